"""
Session context.

All state that outlives a single message lives here and is reached by
handlers through ``server.session``: the negotiated capabilities, the
open documents and the settings cache.
"""

from __future__ import annotations

from dataclasses import dataclass

from lsprotocol.types import InitializeParams

from plainls.workspace.documents import DocumentStore
from plainls.workspace.settings_cache import ConfigurationFetcher, SettingsCache


class ProtocolViolation(Exception):
    """A message that the session cannot accept. Fatal to the session."""


@dataclass(frozen=True)
class SessionCapabilities:
    """Optional client features, fixed once the session is initialized."""

    supports_dynamic_configuration: bool = False
    supports_workspace_folders: bool = False
    supports_diagnostic_related_information: bool = False


class Session:
    def __init__(self, fetch_configuration: ConfigurationFetcher | None = None):
        self.capabilities: SessionCapabilities | None = None
        self.documents = DocumentStore()
        self.settings = SettingsCache(fetch_configuration)
        self.failed = False

    @property
    def accepts_documents(self) -> bool:
        return self.capabilities is not None and not self.failed

    def initialize(self, params: InitializeParams | None) -> SessionCapabilities:
        """
        Negotiate capabilities for this session.

        Raises:
            ProtocolViolation: If the handshake is malformed or the session
                was already initialized. The session is marked failed.
        """
        from plainls.lsp.negotiation import negotiate

        if self.capabilities is not None:
            self.failed = True
            raise ProtocolViolation("Session is already initialized")

        try:
            capabilities = negotiate(params)
        except ProtocolViolation:
            self.failed = True
            raise

        self.capabilities = capabilities
        self.settings.per_scope = capabilities.supports_dynamic_configuration
        return capabilities
