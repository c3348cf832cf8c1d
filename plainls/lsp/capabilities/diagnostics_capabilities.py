"""
Diagnostics capability.

Runs a DiagnosticRule every time a document is opened or changed, and
for all open documents when the configuration changes. Each pass
replaces the whole set of diagnostics previously published for the URI.
"""

from __future__ import annotations

import asyncio
from itertools import count
from typing import TYPE_CHECKING

from lsprotocol.types import (
    LogMessageParams,
    MessageType,
    PublishDiagnosticsParams,
)

from plainls.lsp.capabilities.capabilities import DiagnosticsCapability
from plainls.lsp.capabilities.diagnostic_rules import (
    DiagnosticRule,
    WarningPatternRule,
)
from plainls.workspace.settings_cache import SettingsDiscarded

if TYPE_CHECKING:
    from plainls.lsp.plain_language_server import PlainLanguageServer
    from plainls.workspace.documents import Document


class PatternDiagnosticsCapability(DiagnosticsCapability):
    """Publishes pattern-match warnings for open documents."""

    def __init__(
        self,
        server: PlainLanguageServer,
        rule: DiagnosticRule | None = None,
    ) -> None:
        super().__init__(server)
        self.rule = rule or WarningPatternRule()
        self._passes = count(1)
        # uri -> pass number of the last publish
        self._published: dict[str, int] = {}

    @property
    def name(self) -> str:
        return "pattern_diagnostics"

    @property
    def description(self) -> str:
        return f"Publish diagnostics from the {self.rule.name} rule"

    def register(self) -> None:
        text_sync = self.server.text_sync_manager
        if text_sync is None:
            return

        text_sync.add_on_open_hook(self.validate)
        text_sync.add_on_change_hook(self.validate)
        text_sync.add_on_close_hook(self._forget)

    async def _forget(self, document: Document) -> None:
        self._published.pop(document.uri, None)

    def _is_open(self, document: Document) -> bool:
        current = self.session.documents.get(document.uri)
        return current is not None and current.generation == document.generation

    def _is_current(self, document: Document, pass_number: int) -> bool:
        if not self._is_open(document):
            return False
        return self._published.get(document.uri, 0) < pass_number

    async def validate(self, document: Document) -> None:
        pass_number = next(self._passes)
        # No settings pull for a document that has closed since.
        if not self._is_open(document):
            return

        try:
            settings = await self.session.settings.get(document.uri)
        except SettingsDiscarded:
            return
        except Exception as e:
            # Abandon this pass; the next change triggers a new one.
            self.server.window_log_message(
                LogMessageParams(
                    type=MessageType.Warning,
                    message=f"Could not load settings for {document.uri}: "
                            f"{type(e).__name__}: {e}"
                )
            )
            return

        # Closed, reopened, or overtaken by a later pass while waiting.
        if not self._is_current(document, pass_number):
            return

        capabilities = self.session.capabilities
        diagnostics = self.rule.check(
            document,
            settings,
            related_information=bool(
                capabilities
                and capabilities.supports_diagnostic_related_information
            ),
        )

        self._published[document.uri] = pass_number
        self.server.text_document_publish_diagnostics(
            PublishDiagnosticsParams(
                uri=document.uri,
                diagnostics=diagnostics,
                version=document.version,
            )
        )

    async def revalidate_all(self) -> None:
        await asyncio.gather(
            *(self.validate(document) for document in self.session.documents.all())
        )
