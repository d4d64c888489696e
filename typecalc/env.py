"""Binding environments."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Optional

from typing_extensions import Self

from typecalc.definitions import Definition, DefinitionTable, default_definitions
from typecalc.errors import UnboundReferenceError
from typecalc.values import TypeValue


class Environment(Mapping[str, TypeValue]):
    """A map from type parameter names to the values bound to them.

    Scopes are layered: a child environment holds only its own bindings and
    falls through to its parent for the rest. Environments are never mutated
    once built."""

    def __init__(
        self,
        bindings: Optional[Mapping[str, TypeValue]] = None,
        parent: Optional[Environment] = None,
        definitions: Optional[DefinitionTable] = None,
    ) -> None:
        self._bindings = dict(bindings or {})
        self._parent = parent
        if definitions is None:
            definitions = (
                default_definitions if parent is None else parent.definitions
            )
        self._definitions = definitions

    @property
    def definitions(self) -> DefinitionTable:
        return self._definitions

    def child(self, bindings: Mapping[str, TypeValue]) -> Self:
        return type(self)(bindings, parent=self)

    def resolve(self, name: str) -> TypeValue | Definition:
        """Look `name` up in the bindings, then in the definition table."""
        if name in self:
            return self[name]
        if name in self._definitions:
            return self._definitions[name]
        raise UnboundReferenceError(name)

    def __getitem__(self, name: str) -> TypeValue:
        env: Optional[Environment] = self
        while env is not None:
            if name in env._bindings:
                return env._bindings[name]
            env = env._parent
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        env: Optional[Environment] = self
        while env is not None:
            if name in env._bindings:
                return True
            env = env._parent
        return False

    def __iter__(self) -> Iterator[str]:
        seen = set[str]()
        env: Optional[Environment] = self
        while env is not None:
            for name in env._bindings:
                if name not in seen:
                    seen.add(name)
                    yield name
            env = env._parent

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __str__(self) -> str:
        return f'{{{', '.join(f'{n}: {t}' for n, t in self.items())}}}'

    def __repr__(self) -> str:
        return f'Environment({dict(self.items())!r})'
