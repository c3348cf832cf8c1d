"""
Diagnostic rules.

A rule is a pure function of a document and its effective settings. The
engine in diagnostics_capabilities.py decides when to run it and where
to publish the result.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from lsprotocol.types import (
    Diagnostic,
    DiagnosticRelatedInformation,
    DiagnosticSeverity,
    Location,
    Range,
)

if TYPE_CHECKING:
    from plainls.workspace.documents import Document
    from plainls.workspace.settings_cache import Settings


DIAGNOSTIC_SOURCE = "plainls"

WARNING_PATTERN = re.compile(r"purple\shair\sis\s((?!fabulous).*)")

RELATED_HINTS = (
    "Did you mean 'fabulous'?",
    "Or are you a hater?",
)


class DiagnosticRule(ABC):
    """Base class for diagnostic rules."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def check(
        self,
        document: Document,
        settings: Settings,
        related_information: bool = False,
    ) -> list[Diagnostic]:
        """
        Produce the diagnostics for a document.

        At most settings.max_number_of_problems diagnostics are returned.
        Related information is attached only when the client supports it.
        """
        pass


class WarningPatternRule(DiagnosticRule):
    """Warn about every match of a pattern, in document order."""

    def __init__(
        self,
        pattern: re.Pattern[str] = WARNING_PATTERN,
        hints: tuple[str, ...] = RELATED_HINTS,
        source: str = DIAGNOSTIC_SOURCE,
    ) -> None:
        self.pattern = pattern
        self.hints = hints
        self.source = source

    @property
    def name(self) -> str:
        return "warning_pattern"

    def check(
        self,
        document: Document,
        settings: Settings,
        related_information: bool = False,
    ) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []

        for match in self.pattern.finditer(document.text):
            # Later matches are dropped once the cap is reached
            if len(diagnostics) >= settings.max_number_of_problems:
                break

            start = document.position_at(match.start())
            end = document.position_at(match.end())

            related = None
            if related_information:
                related = [
                    DiagnosticRelatedInformation(
                        location=Location(
                            uri=document.uri,
                            range=Range(start=start, end=end),
                        ),
                        message=hint,
                    )
                    for hint in self.hints
                ]

            diagnostics.append(
                Diagnostic(
                    range=Range(start=start, end=end),
                    message=f"incorrect syntax {match.group(0)}",
                    severity=DiagnosticSeverity.Warning,
                    source=self.source,
                    related_information=related,
                )
            )

        return diagnostics
