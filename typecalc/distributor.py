"""Distribution of conditional types over unions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from typecalc.expressions import Conditional, Expression, Ref
from typecalc.logging import TypeCalcLogger
from typecalc.values import Never, TypeValue, Union, normalize

if TYPE_CHECKING:
    from typecalc.env import Environment


_logger = TypeCalcLogger(logging.getLogger(__name__))


def distribution_members(
    check: Expression, env: Environment
) -> Optional[Sequence[TypeValue]]:
    """The union members a conditional distributes over.

    Only a naked type parameter distributes: a bare `Ref` to a binding in
    scope. Wrapping it (`[T]`) turns distribution off. `never` is the empty
    union. Returns None when the conditional is evaluated just once."""
    if not isinstance(check, Ref) or check.name not in env:
        return None
    value = normalize(env[check.name])
    if isinstance(value, Union):
        return list(value.members)
    if value is Never:
        return []
    return None


class Distributor:
    def __init__(
        self, evaluate_once: Callable[[Conditional, Environment], TypeValue]
    ) -> None:
        self._evaluate_once = evaluate_once

    def evaluate(self, conditional: Conditional, env: Environment) -> TypeValue:
        members = distribution_members(conditional.check, env)
        if members is None:
            return self._evaluate_once(conditional, env)
        assert isinstance(conditional.check, Ref)
        name = conditional.check.name
        _logger.debug('distributing over {} members of {}', len(members), name)
        return normalize(
            Union(
                [
                    self._evaluate_once(conditional, env.child({name: member}))
                    for member in members
                ]
            )
        )
