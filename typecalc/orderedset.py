from collections.abc import Hashable
from typing import AbstractSet, Iterable, Iterator


class InsertionOrderedSet[T: Hashable](AbstractSet[T]):
    """An immutable set that iterates in insertion order.

    Equality is set equality, so two sets holding the same elements in a
    different order compare (and hash) equal."""

    def __init__(self, elements: Iterable[T] = ()) -> None:
        super().__init__()
        self._data = dict.fromkeys(elements)

    def __contains__(self, element: object) -> bool:
        return element in self._data

    def __iter__(self) -> Iterator[T]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __or__(self, other: object) -> 'InsertionOrderedSet[T]':
        if not isinstance(other, AbstractSet):
            return NotImplemented
        return InsertionOrderedSet([*self, *other])

    def __sub__(self, other: object) -> 'InsertionOrderedSet[T]':
        if not isinstance(other, AbstractSet):
            return NotImplemented
        return InsertionOrderedSet(x for x in self if x not in other)

    def __and__(self, other: object) -> 'InsertionOrderedSet[T]':
        if not isinstance(other, AbstractSet):
            return NotImplemented
        return InsertionOrderedSet(x for x in self if x in other)

    def __hash__(self) -> int:
        return self._hash()

    def __repr__(self) -> str:
        return f'{type(self).__qualname__}({list(self._data)!r})'
