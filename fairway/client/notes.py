"""
Fairway client: special instructions

Notes stay structured until the checkout request is built; only
render_notes() knows the "<item>: <note>" wire format.
"""
from dataclasses import dataclass
from enum import Enum


class NoteScope(str, Enum):
    ORDER = "order"
    ITEM = "item"


@dataclass(frozen=True)
class NoteEntry:
    scope: NoteScope
    text: str
    item_ref: str | None = None
    item_name: str | None = None

    def render(self) -> str:
        if self.scope is NoteScope.ITEM:
            return f"{self.item_name}: {self.text}"
        return self.text


def render_notes(entries: list[NoteEntry]) -> str:
    """Order-level notes first, then item notes, newline-joined. Blank entries are dropped."""
    ordered = sorted(entries, key=lambda e: e.scope is NoteScope.ITEM)
    return "\n".join(e.render() for e in ordered if e.text and e.text.strip())
