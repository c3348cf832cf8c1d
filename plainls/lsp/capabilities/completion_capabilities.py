"""
Completion capability.

Offers a fixed list of candidates. Each candidate carries a data tag, and
the resolve request looks the tag up to attach detail and documentation,
so nothing is stored between the two requests.
"""

from lsprotocol.types import (
    CompletionItem,
    CompletionItemKind,
    CompletionList,
    CompletionParams,
)

from plainls.lsp.capabilities.capabilities import CompletionCapability


# (label, data tag)
CANDIDATES = (
    ("TypeScript", 1),
    ("JavaScript", 2),
)

# data tag -> (detail, documentation)
RESOLVED_DETAILS = {
    1: ("TypeScript details", "TypeScript documentation"),
    2: ("JavaScript details", "JavaScript documentation"),
}


class FixedCompletionCapability(CompletionCapability):
    """Provides the same completion candidates everywhere."""

    @property
    def name(self) -> str:
        return "fixed_completion"

    @property
    def description(self) -> str:
        return "Complete a fixed vocabulary, independent of position"

    async def can_handle(self, params: CompletionParams) -> bool:
        return True

    async def complete(self, params: CompletionParams) -> CompletionList:
        items = [
            CompletionItem(label=label, kind=CompletionItemKind.Text, data=tag)
            for label, tag in CANDIDATES
        ]
        return CompletionList(is_incomplete=False, items=items)

    async def resolve(self, item: CompletionItem) -> CompletionItem:
        tag = item.data
        # bool is an int subclass; True must not resolve as tag 1
        if isinstance(tag, bool) or not isinstance(tag, int):
            return item

        details = RESOLVED_DETAILS.get(tag)
        if details is None:
            return item

        item.detail, item.documentation = details
        return item
