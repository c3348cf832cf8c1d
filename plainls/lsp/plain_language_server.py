from __future__ import annotations

import asyncio
import inspect
from typing import Any

from lsprotocol.types import (
    ConfigurationItem,
    ConfigurationParams,
    LogMessageParams,
    MessageType,
)
from pygls.exceptions import JsonRpcMethodNotFound
from pygls.lsp.server import LanguageServer

from plainls.lsp.capabilities.capabilities import CapabilityManager
from plainls.lsp.negotiation import SERVER_CAPABILITIES
from plainls.lsp.session import Session
from plainls.lsp.text_sync_manager import TextSyncManager


class PlainLanguageServer(LanguageServer):
    """
    Custom Language Server holding the session context.

    Attributes:
        session: Negotiated capabilities, open documents and settings cache
    """

    def __init__(self, name: str, version: str):
        super().__init__(
            name,
            version,
            text_document_sync_kind=SERVER_CAPABILITIES.text_document_sync,
        )

        self.session = Session(fetch_configuration=self.pull_configuration)
        self.capability_manager: CapabilityManager | None = None
        self.text_sync_manager: TextSyncManager | None = None
        self.terminated = False

    async def pull_configuration(self, uri: str) -> Any:
        """Ask the client for the settings section scoped to one document."""
        settings = self.session.settings
        result = await self.workspace_configuration_async(
            ConfigurationParams(
                items=[ConfigurationItem(scope_uri=uri, section=settings.section)]
            )
        )
        return result[0] if result else None

    def is_protocol_violation(self, error: Exception) -> bool:
        """
        Decide whether an error reported by pygls ends the session.

        Any error before a successful handshake is fatal: either the
        initialize request could not be deserialized, or the initialize
        handler rejected it. After the handshake, requests for unknown
        methods are fatal too, except optional ``$/`` ones.
        """
        if self.session.failed or self.session.capabilities is None:
            return True

        if isinstance(error, JsonRpcMethodNotFound):
            method = error.message.partition(": ")[2]
            return not method.startswith("$/")

        return False

    def report_server_error(self, error: Exception, source) -> None:
        if self.terminated:
            return

        if self.is_protocol_violation(error):
            self.terminate(f"{type(error).__name__}: {error}")
            return

        super().report_server_error(error, source)

    def terminate(self, reason: str) -> None:
        """
        Close the connection after a protocol violation.

        Responses already sent (such as the error answering a rejected
        initialize request) go out before the transport is closed.
        """
        self.session.failed = True
        self.window_log_message(
            LogMessageParams(
                type=MessageType.Error,
                message=f"Protocol violation, closing the session: {reason}"
            )
        )
        self.terminated = True

        writer = self.protocol.writer
        # Nothing is written once the transport is gone.
        self.protocol.writer = None
        self.shutdown()

        if writer is not None:
            res = writer.close()
            if inspect.isawaitable(res):
                asyncio.ensure_future(res)
