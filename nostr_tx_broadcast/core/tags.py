from __future__ import annotations

from typing import Callable, Iterable, Optional, Sequence, TypeVar

T = TypeVar("T")

Tag = Sequence[str]


def find_first(items: Iterable[T], predicate: Callable[[T], bool]) -> Optional[T]:
    for item in items:
        if predicate(item):
            return item
    return None


def find_tag(tags: Iterable[Tag], key: str) -> Optional[Tag]:
    """Return the first tag whose key (first element) equals `key`."""

    return find_first(tags, lambda t: len(t) > 0 and t[0] == key)


def tag_values(tag: Tag) -> tuple[str, ...]:
    return tuple(tag[1:])
