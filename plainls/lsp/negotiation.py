"""
Capability negotiation.

The client declares its optional features in the initialize request. We
record the three we care about and advertise a fixed manifest: full
document synchronization and completion with a resolve phase.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from lsprotocol.types import (
    WORKSPACE_DID_CHANGE_CONFIGURATION,
    CompletionOptions,
    InitializeParams,
    LogMessageParams,
    MessageType,
    Registration,
    RegistrationParams,
    ServerCapabilities,
    TextDocumentSyncKind,
)

from plainls.lsp.session import ProtocolViolation, SessionCapabilities

if TYPE_CHECKING:
    from plainls.lsp.plain_language_server import PlainLanguageServer


SERVER_CAPABILITIES = ServerCapabilities(
    text_document_sync=TextDocumentSyncKind.Full,
    completion_provider=CompletionOptions(resolve_provider=True),
)


def negotiate(params: InitializeParams | None) -> SessionCapabilities:
    """
    Read the client capabilities from an initialize request.

    Raises:
        ProtocolViolation: If params or their capabilities are missing.
    """
    if params is None or getattr(params, "capabilities", None) is None:
        raise ProtocolViolation("initialize request carries no client capabilities")

    capabilities = params.capabilities
    workspace = capabilities.workspace
    text_document = capabilities.text_document
    publish_diagnostics = text_document.publish_diagnostics if text_document else None

    return SessionCapabilities(
        supports_dynamic_configuration=bool(workspace and workspace.configuration),
        supports_workspace_folders=bool(workspace and workspace.workspace_folders),
        supports_diagnostic_related_information=bool(
            publish_diagnostics and publish_diagnostics.related_information
        ),
    )


async def on_initialized(server: PlainLanguageServer) -> None:
    """Register for configuration changes once the client is ready."""
    capabilities = server.session.capabilities
    if capabilities is None:
        return

    if capabilities.supports_dynamic_configuration:
        registration = Registration(
            id=str(uuid.uuid4()),
            method=WORKSPACE_DID_CHANGE_CONFIGURATION,
        )
        try:
            await server.client_register_capability_async(
                RegistrationParams(registrations=[registration])
            )
        except Exception as e:
            server.window_log_message(
                LogMessageParams(
                    type=MessageType.Warning,
                    message=f"Could not register for configuration changes: "
                            f"{type(e).__name__}: {e}"
                )
            )

    if capabilities.supports_workspace_folders:
        server.window_log_message(
            LogMessageParams(
                type=MessageType.Log,
                message="Observing workspace folder changes"
            )
        )
