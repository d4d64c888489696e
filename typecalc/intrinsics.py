"""Built-in string manipulation definitions."""

from typing import Callable, Sequence

from typecalc.errors import (
    ArityMismatchError,
    format_wrong_number_of_arguments_error,
)
from typecalc.values import Literal, TypeValue, Union, normalize


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def _uncapitalize(text: str) -> str:
    return text[:1].lower() + text[1:]


_string_intrinsics: dict[str, Callable[[str], str]] = {
    'Uppercase': str.upper,
    'Lowercase': str.lower,
    'Capitalize': _capitalize,
    'Uncapitalize': _uncapitalize,
}


def is_intrinsic(name: str) -> bool:
    return name in _string_intrinsics


def apply_intrinsic(name: str, args: Sequence[TypeValue]) -> TypeValue:
    if len(args) != 1:
        raise ArityMismatchError(
            format_wrong_number_of_arguments_error(name, 1, 1, len(args))
        )
    return _map_strings(_string_intrinsics[name], normalize(args[0]))


def _map_strings(f: Callable[[str], str], value: TypeValue) -> TypeValue:
    if isinstance(value, Literal) and value.kind == 'string':
        assert isinstance(value.value, str)
        return Literal('string', f(value.value))
    if isinstance(value, Union):
        return normalize(Union(_map_strings(f, m) for m in value.members))
    # Strings that aren't known exactly are left alone.
    return value
