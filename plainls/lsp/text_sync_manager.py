"""
Text Synchronization Manager

Keeps the session's DocumentStore in step with the client and provides
hook extension points for capabilities to react to document lifecycle
events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

from lsprotocol.types import (
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    LogMessageParams,
    MessageType,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
)

from plainls.workspace.documents import Document, DocumentNotOpen

if TYPE_CHECKING:
    from plainls.lsp.plain_language_server import PlainLanguageServer


# Hooks receive the document snapshot the event produced (or removed)
DocumentHook = Callable[[Document], Awaitable[None]]


class TextSyncManager:
    """
    Applies text document notifications to the DocumentStore and
    broadcasts them to registered hooks.

    Design Principles:
    - Text sync is infrastructure, NOT a capability
    - Every open/change yields exactly one broadcast, no debouncing
    - Errors are isolated (one hook failure doesn't affect others)
    - Hooks run in registration order

    Usage:
        text_sync = TextSyncManager(server)
        text_sync.register_handlers()
        server.text_sync_manager = text_sync

        # Capabilities register hooks for feature-specific operations
        class DiagnosticsCapability(Capability):
            def register(self):
                text_sync = self.server.text_sync_manager
                text_sync.add_on_change_hook(self.validate)
    """

    def __init__(self, server: PlainLanguageServer) -> None:
        self.server = server

        self._on_open_hooks: list[DocumentHook] = []
        self._on_change_hooks: list[DocumentHook] = []
        self._on_close_hooks: list[DocumentHook] = []

    def add_on_open_hook(self, hook: DocumentHook) -> None:
        self._on_open_hooks.append(hook)

    def add_on_change_hook(self, hook: DocumentHook) -> None:
        """
        Register a hook for document change events.

        Called once per didChange notification with the replaced document.
        """
        self._on_change_hooks.append(hook)

    def add_on_close_hook(self, hook: DocumentHook) -> None:
        """
        Register a hook for document close events.

        The document has already been removed from the store and its
        settings entry evicted when the hook runs.
        """
        self._on_close_hooks.append(hook)

    async def _broadcast(
        self, event: str, hooks: list[DocumentHook], document: Document
    ) -> None:
        for hook in hooks:
            try:
                await hook(document)
            except Exception as e:
                self.server.window_log_message(
                    LogMessageParams(
                        type=MessageType.Error,
                        message=f"Error in {event} hook "
                                f"{getattr(hook, '__name__', hook)}: "
                                f"{type(e).__name__}: {e}"
                    )
                )

    def _refuse(self, method: str) -> bool:
        """Drop notifications on a session that never negotiated successfully."""
        if self.server.session.accepts_documents:
            return False

        self.server.window_log_message(
            LogMessageParams(
                type=MessageType.Error,
                message=f"Ignoring {method}: session is not initialized"
            )
        )
        return True

    async def did_open(self, params: DidOpenTextDocumentParams) -> None:
        if self._refuse(TEXT_DOCUMENT_DID_OPEN):
            return

        item = params.text_document
        document = self.server.session.documents.open(
            item.uri, item.text, item.version
        )
        self.server.window_log_message(
            LogMessageParams(
                type=MessageType.Info,
                message=f"Document opened: {item.uri}"
            )
        )
        await self._broadcast("on_open", self._on_open_hooks, document)

    async def did_change(self, params: DidChangeTextDocumentParams) -> None:
        if self._refuse(TEXT_DOCUMENT_DID_CHANGE):
            return
        if not params.content_changes:
            return

        # Full sync: the last change holds the whole new text.
        text = params.content_changes[-1].text
        uri = params.text_document.uri
        try:
            document = self.server.session.documents.change(
                uri, text, params.text_document.version
            )
        except DocumentNotOpen:
            self.server.window_log_message(
                LogMessageParams(
                    type=MessageType.Warning,
                    message=f"Change for a document that is not open: {uri}"
                )
            )
            return

        await self._broadcast("on_change", self._on_change_hooks, document)

    async def did_close(self, params: DidCloseTextDocumentParams) -> None:
        if self._refuse(TEXT_DOCUMENT_DID_CLOSE):
            return

        uri = params.text_document.uri
        session = self.server.session
        document = session.documents.close(uri)
        session.settings.evict(uri)
        self.server.window_log_message(
            LogMessageParams(
                type=MessageType.Info,
                message=f"Document closed: {uri}"
            )
        )
        if document is not None:
            await self._broadcast("on_close", self._on_close_hooks, document)

    def register_handlers(self) -> None:
        """
        Register LSP text synchronization handlers with the server.

        Registers handlers for:
        - textDocument/didOpen
        - textDocument/didChange
        - textDocument/didClose
        """

        @self.server.feature(TEXT_DOCUMENT_DID_OPEN)
        async def did_open(
            ls: PlainLanguageServer,
            params: DidOpenTextDocumentParams,
        ) -> None:
            await self.did_open(params)

        @self.server.feature(TEXT_DOCUMENT_DID_CHANGE)
        async def did_change(
            ls: PlainLanguageServer,
            params: DidChangeTextDocumentParams,
        ) -> None:
            await self.did_change(params)

        @self.server.feature(TEXT_DOCUMENT_DID_CLOSE)
        async def did_close(
            ls: PlainLanguageServer,
            params: DidCloseTextDocumentParams,
        ) -> None:
            await self.did_close(params)
