"""Item collections exposed to layouts as ``items`` and ``tags``.

Layouts select items by the attributes every content file declares: its
layout, its tags, and the folder it lives in.

    {% for post in items.with_layout('post').published().sorted() %}
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import ContentItem
from .utils import extract_number_from_name


def _order_key(item: ContentItem) -> tuple:
    # URLs are unique within a build, so ties always break the same way.
    number = extract_number_from_name(item.path.stem)
    return (item.date, number if number is not None else -1, item.url)


class ItemCollection(Sequence[ContentItem]):
    """Read-only sequence of items with chainable filters."""

    def __init__(self, items: Iterable[ContentItem]):
        self._items = list(items)

    def __iter__(self) -> Iterator[ContentItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index):
        return self._items[index]

    def _where(self, predicate) -> ItemCollection:
        return ItemCollection(item for item in self._items if predicate(item))

    def with_layout(self, layout: str) -> ItemCollection:
        return self._where(lambda item: item.layout == layout)

    def with_tag(self, tag: str) -> ItemCollection:
        return self._where(lambda item: tag in item.tags)

    def group(self, name: str) -> ItemCollection:
        """Items whose first folder is ``name``; ``""`` selects root items."""
        return self._where(lambda item: item.group == name)

    def drafts(self) -> ItemCollection:
        return self._where(lambda item: item.draft)

    def published(self) -> ItemCollection:
        return self._where(lambda item: not item.draft)

    def by_layout(self) -> dict[str, ItemCollection]:
        """Partition items by declared layout, keyed in layout-name order."""
        layouts = sorted({item.layout for item in self._items})
        return {name: self.with_layout(name) for name in layouts}

    def tag_names(self) -> list[str]:
        """Distinct tags carried by these items, sorted."""
        return sorted({tag for item in self._items for tag in item.tags})

    def sorted(self, reverse: bool = True) -> ItemCollection:
        """Order items by date, then number prefix, then URL.

        Args:
            reverse: Newest first when True (the default).
        """
        return ItemCollection(sorted(self._items, key=_order_key, reverse=reverse))

    def latest(self, count: int = 5) -> ItemCollection:
        return ItemCollection(self.sorted()[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"ItemCollection({len(self._items)} items)"


class TagCollection(Mapping[str, ItemCollection]):
    """Mapping of tag name to its items, iterated in tag order."""

    def __init__(self, mapping: Mapping[str, Iterable[ContentItem]]):
        self._mapping = {k: ItemCollection(mapping[k]) for k in sorted(mapping)}

    def __getitem__(self, key: str) -> ItemCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def counts(self) -> dict[str, int]:
        return {name: len(items) for name, items in self._mapping.items()}

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagCollection({len(self._mapping)} tags)"
