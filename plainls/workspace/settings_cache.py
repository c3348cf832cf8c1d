"""
Per-document settings cache.

When the client supports the workspace/configuration request, settings
are pulled once per open document and memoized as a pending fetch, so
concurrent lookups for the same URI share one request. Otherwise a
single global value is used, replaced by configuration change
notifications.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import Any


SETTINGS_SECTION = "plainLanguageServer"
DEFAULT_MAX_NUMBER_OF_PROBLEMS = 10000

# Pulls the raw configuration value for one document URI from the client.
ConfigurationFetcher = Callable[[str], Awaitable[Any]]


class InvalidSettings(ValueError):
    """Raised when the client sends settings of the wrong shape."""


class SettingsDiscarded(Exception):
    """Raised to waiters of a fetch that was dropped by a document close."""


@dataclass(frozen=True)
class Settings:
    max_number_of_problems: int = DEFAULT_MAX_NUMBER_OF_PROBLEMS

    @classmethod
    def from_raw(cls, value: Any) -> Settings:
        """
        Build Settings from a raw configuration value.

        Missing values fall back to the defaults.
        """
        if value is None:
            return cls()
        if not isinstance(value, Mapping):
            raise InvalidSettings(f"Expected a settings object, got {value!r}")

        max_problems = value.get("maxNumberOfProblems")
        if max_problems is None:
            return cls()
        if (
            isinstance(max_problems, bool)
            or not isinstance(max_problems, int)
            or max_problems < 0
        ):
            raise InvalidSettings(
                f"maxNumberOfProblems must be a non-negative integer, "
                f"got {max_problems!r}"
            )
        return cls(max_number_of_problems=max_problems)


DEFAULT_SETTINGS = Settings()


class SettingsCache:
    """
    Resolve the effective Settings for a document.

    Usage:
        cache = SettingsCache(fetch_configuration, per_scope=True)
        settings = await cache.get("file:///notes.txt")

        # Document closed: drop its entry and any in-flight pull
        cache.evict("file:///notes.txt")

        # Global configuration changed
        cache.apply_configuration_change(params.settings)
    """

    def __init__(
        self,
        fetch: ConfigurationFetcher | None = None,
        per_scope: bool = False,
        section: str = SETTINGS_SECTION,
    ) -> None:
        self._fetch = fetch
        self.per_scope = per_scope
        self.section = section
        self.global_settings = DEFAULT_SETTINGS
        self._pending: dict[str, asyncio.Future[Settings]] = {}

    async def get(self, uri: str) -> Settings:
        if not self.per_scope:
            return self.global_settings

        fetch = self._pending.get(uri)
        if fetch is None:
            fetch = asyncio.ensure_future(self._pull(uri))
            fetch.add_done_callback(partial(self._forget_failed, uri))
            self._pending[uri] = fetch

        try:
            # Shielded so one cancelled waiter doesn't cancel the shared pull.
            return await asyncio.shield(fetch)
        except asyncio.CancelledError:
            if fetch.cancelled():
                raise SettingsDiscarded(uri) from None
            raise

    async def _pull(self, uri: str) -> Settings:
        if self._fetch is None:
            raise RuntimeError("No configuration fetcher available")
        return Settings.from_raw(await self._fetch(uri))

    def _forget_failed(self, uri: str, fetch: asyncio.Future[Settings]) -> None:
        # A failed pull must not stick; the next lookup retries.
        if fetch.cancelled() or fetch.exception() is None:
            return
        if self._pending.get(uri) is fetch:
            del self._pending[uri]

    def is_cached(self, uri: str) -> bool:
        return uri in self._pending

    def evict(self, uri: str) -> None:
        """Drop the entry for a closed document, cancelling an in-flight pull."""
        fetch = self._pending.pop(uri, None)
        if fetch is not None and not fetch.done():
            fetch.cancel()

    def clear(self) -> None:
        self._pending.clear()

    def apply_configuration_change(self, raw_settings: Any) -> None:
        """
        React to workspace/didChangeConfiguration.

        In pull mode the notification carries nothing useful and the whole
        cache is cleared. In legacy mode it carries the full settings blob,
        keyed by section.
        """
        if self.per_scope:
            self.clear()
            return

        section_value = None
        if isinstance(raw_settings, Mapping):
            section_value = raw_settings.get(self.section)
        self.global_settings = Settings.from_raw(section_value)
