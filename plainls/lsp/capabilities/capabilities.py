"""
Feature handlers for plainls.

Diagnostics and completion live in capability objects owned by a
CapabilityManager. The server routes completion requests and
configuration changes through the manager; document events reach the
diagnostics capability through the TextSyncManager hooks it installs
in ``register``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, TypeVar

from lsprotocol.types import (
    CompletionItem,
    CompletionList,
    CompletionParams,
    LogMessageParams,
    MessageType,
)

if TYPE_CHECKING:
    from plainls.lsp.plain_language_server import PlainLanguageServer
    from plainls.lsp.session import Session
    from plainls.workspace.documents import Document

C = TypeVar("C", bound="Capability")


class Capability(ABC):
    """A feature handler bound to one server and its session."""

    def __init__(self, server: PlainLanguageServer) -> None:
        self.server = server

    @property
    def session(self) -> Session:
        return self.server.session

    def register(self) -> None:
        """Install document hooks. Runs once, at server creation."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Key of this capability in the manager."""

    @property
    @abstractmethod
    def description(self) -> str:
        pass


class CompletionCapability(Capability):
    """Answers textDocument/completion and completionItem/resolve."""

    @abstractmethod
    async def can_handle(self, params: CompletionParams) -> bool:
        pass

    @abstractmethod
    async def complete(self, params: CompletionParams) -> CompletionList:
        pass

    async def resolve(self, item: CompletionItem) -> CompletionItem:
        return item


class DiagnosticsCapability(Capability):
    """Publishes diagnostics for open documents."""

    @abstractmethod
    async def validate(self, document: Document) -> None:
        """Run one validation pass over ``document`` and publish it."""

    @abstractmethod
    async def revalidate_all(self) -> None:
        pass


class CapabilityManager:
    """
    Owns the capabilities of one server.

    With no explicit mapping the manager holds the pattern diagnostics
    and the fixed completion list.
    """

    def __init__(
        self,
        server: PlainLanguageServer,
        capabilities: dict[str, Capability] | None = None,
    ):
        self.server = server

        if capabilities is None:
            capabilities = default_capabilities(server)

        self.capabilities = capabilities
        self._registered = False

    def register_all(self) -> None:
        """Call ``register`` on every capability; repeat calls do nothing."""
        if self._registered:
            return

        for capability in self.capabilities.values():
            capability.register()

        self._registered = True

    def get_capability(self, name: str) -> Capability | None:
        return self.capabilities.get(name)

    def get_capabilities_by_type(self, capability_type: type[C]) -> list[C]:
        return [
            cap
            for cap in self.capabilities.values()
            if isinstance(cap, capability_type)
        ]

    async def handle_completion(self, params: CompletionParams) -> CompletionList:
        """Merge the items of every completion capability that accepts the request."""
        items: list[CompletionItem] = []

        for capability in self.get_capabilities_by_type(CompletionCapability):
            if await capability.can_handle(params):
                items.extend((await capability.complete(params)).items)

        return CompletionList(is_incomplete=False, items=items)

    async def resolve_completion(self, item: CompletionItem) -> CompletionItem:
        """
        Let each completion capability fill in ``item``.

        A failing resolver is logged to the client and skipped; the item
        keeps whatever the earlier resolvers added.
        """
        for capability in self.get_capabilities_by_type(CompletionCapability):
            try:
                item = await capability.resolve(item)
            except Exception as e:
                self.server.window_log_message(
                    LogMessageParams(
                        type=MessageType.Error,
                        message=f"Completion resolve error in {capability.name}: {e}"
                    )
                )

        return item

    async def handle_configuration_change(self) -> None:
        for capability in self.get_capabilities_by_type(DiagnosticsCapability):
            await capability.revalidate_all()


def default_capabilities(server: PlainLanguageServer) -> dict[str, Capability]:
    from plainls.lsp.capabilities.completion_capabilities import (
        FixedCompletionCapability,
    )
    from plainls.lsp.capabilities.diagnostics_capabilities import (
        PatternDiagnosticsCapability,
    )

    return {
        "pattern_diagnostics": PatternDiagnosticsCapability(server),
        "fixed_completion": FixedCompletionCapability(server),
    }
