"""The table of named, possibly recursive, generic definitions.

A definition never embeds itself: recursion goes through `Apply` and a name
lookup in this table, so the table is a plain arena of bodies keyed by name.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Iterable, Optional

from typecalc.context import is_evaluating
from typecalc.errors import (
    DefinitionError,
    format_definition_during_evaluation_error,
    format_duplicate_parameter_error,
    format_required_after_default_error,
)
from typecalc.expressions import Expression


class Parameter:
    def __init__(self, name: str, default: Optional[Expression] = None) -> None:
        self.name = name
        self.default = default

    def __repr__(self) -> str:
        if self.default is None:
            return f'Parameter({self.name!r})'
        return f'Parameter({self.name!r}, {self.default!r})'


class Definition:
    def __init__(
        self, name: str, parameters: Iterable[Parameter], body: Expression
    ) -> None:
        self.name = name
        self.parameters = tuple(parameters)
        self.body = body

        seen = set[str]()
        has_default = False
        for parameter in self.parameters:
            if parameter.name in seen:
                raise DefinitionError(
                    format_duplicate_parameter_error(name, parameter.name)
                )
            seen.add(parameter.name)
            if parameter.default is not None:
                has_default = True
            elif has_default:
                raise DefinitionError(
                    format_required_after_default_error(name, parameter.name)
                )

    @property
    def required_count(self) -> int:
        return sum(1 for p in self.parameters if p.default is None)

    def __repr__(self) -> str:
        return (
            f'Definition({self.name!r}, {list(self.parameters)!r}, '
            f'{self.body!r})'
        )


class DefinitionTable(Mapping[str, Definition]):
    """Definitions by name. Append-only, and read-only while evaluating."""

    def __init__(self, definitions: Iterable[Definition] = ()) -> None:
        self._definitions: dict[str, Definition] = {}
        for definition in definitions:
            self._definitions[definition.name] = definition

    def define(
        self,
        name: str,
        parameters: Iterable[str | Parameter],
        body: Expression,
    ) -> Definition:
        if is_evaluating():
            raise DefinitionError(
                format_definition_during_evaluation_error(name)
            )
        definition = Definition(
            name,
            [p if isinstance(p, Parameter) else Parameter(p) for p in parameters],
            body,
        )
        self._definitions[name] = definition
        return definition

    def copy(self) -> DefinitionTable:
        return DefinitionTable(self._definitions.values())

    def __getitem__(self, name: str) -> Definition:
        return self._definitions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __repr__(self) -> str:
        return f'DefinitionTable({list(self._definitions.values())!r})'


default_definitions = DefinitionTable()


def define_type(
    name: str,
    parameters: Iterable[str | Parameter],
    body: Expression,
    table: Optional[DefinitionTable] = None,
) -> Definition:
    """Register (or overwrite) a definition.

    Must happen before any evaluation that reaches the definition."""
    return (default_definitions if table is None else table).define(
        name, parameters, body
    )
