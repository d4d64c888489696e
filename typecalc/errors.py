from __future__ import annotations
import builtins
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from typecalc.expressions import Expression
    from typecalc.values import TypeValue


class EvaluationError(Exception):
    """Base of every error raised while evaluating an expression.

    None of these are retried or recovered from inside the engine: the first
    one raised aborts the whole top-level evaluation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.expression: Expression | None = None

    def set_expression_if_missing(self, expression: Expression) -> None:
        if self.expression is None:
            self.expression = expression

    def __str__(self) -> str:
        if self.expression is None:
            return self.message
        return '{} (while evaluating {})'.format(self.message, self.expression)


class UnboundReferenceError(EvaluationError, builtins.NameError):
    def __init__(self, name: str) -> None:
        super().__init__(f'name {name!r} is not bound or defined')
        self.name = name


class ArityMismatchError(EvaluationError, builtins.TypeError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class NoSuchFieldError(EvaluationError, builtins.LookupError):
    def __init__(self, target: TypeValue, key: TypeValue) -> None:
        super().__init__(f'{key} does not index into {target}')
        self.target = target
        self.key = key


class MatchAmbiguousError(EvaluationError):
    pass


class RecursionLimitError(EvaluationError, builtins.RecursionError):
    def __init__(self, depth: int) -> None:
        super().__init__(
            f'recursion limit exceeded: definitions nested {depth} deep'
        )
        self.depth = depth


class InferOutsidePatternError(EvaluationError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f'infer {name} can only appear in the pattern of a conditional'
        )
        self.name = name


class NotSpreadableError(EvaluationError, builtins.TypeError):
    def __init__(self, value: TypeValue) -> None:
        super().__init__(f'{value} is not a tuple and cannot be spread')
        self.value = value


class InvalidKeyError(EvaluationError, builtins.TypeError):
    def __init__(self, key: TypeValue) -> None:
        super().__init__(
            f'{key} cannot be used as a property name in a mapped type'
        )
        self.key = key


class UnhandledExpressionError(builtins.NotImplementedError):
    pass


class DefinitionError(Exception):
    """Raised for malformed definitions and for misuse of the definition table."""


def format_wrong_number_of_arguments_error(
    name: str, minimum: int, maximum: int, actual: int
) -> str:
    if minimum == maximum:
        expected = str(minimum)
    else:
        expected = f'{minimum} to {maximum}'
    return f'{name} expects {expected} type arguments, got {actual}'


def format_generic_used_without_arguments_error(
    name: str, parameter_count: int
) -> str:
    return (
        f'{name} is generic over {parameter_count} parameters and must be '
        'applied to arguments'
    )


def format_open_tuple_spread_error(value: TypeValue) -> str:
    return (
        f'{value} has a variadic tail and can only be spread at the end of a '
        'tuple'
    )


def format_adjacent_holes_error(first: str, second: str) -> str:
    return (
        f'template holes {first} and {second} are adjacent with no text '
        'between them, so the split is ambiguous'
    )


def format_duplicate_parameter_error(name: str, parameter: str) -> str:
    return f'{name} declares parameter {parameter} more than once'


def format_required_after_default_error(name: str, parameter: str) -> str:
    return (
        f'required parameter {parameter} of {name} follows a parameter with '
        'a default'
    )


def format_definition_during_evaluation_error(name: str) -> str:
    return (
        f'cannot define {name} while an evaluation is running; register '
        'every definition before evaluating'
    )
