"""JSON forms of type values, expressions and definitions.

Values are objects tagged by `"kind"`; expressions are objects tagged by
`"node"`. For example, `[string, ...number[]]` as a value is

    {"kind": "tuple",
     "elements": [{"value": {"kind": "primitive", "name": "string"}}],
     "rest": {"kind": "primitive", "name": "number"}}
"""

from __future__ import annotations

import json
from typing import Callable, Mapping, Optional

from typecalc.definitions import Definition, Parameter
from typecalc.expressions import (
    Apply,
    Conditional,
    Expression,
    FieldExpr,
    FunctionExpr,
    IndexedAccess,
    Infer,
    IntersectionExpr,
    Keyof,
    Lit,
    MappedType,
    Modifier,
    ObjectExpr,
    OptionalElement,
    Ref,
    Spread,
    TemplateLiteral,
    TupleExpr,
    TupleItem,
    UnionExpr,
)
from typecalc.values import (
    Any,
    Field,
    FunctionType,
    Intersection,
    Literal,
    Never,
    Primitive,
    Record,
    TemplateString,
    Tuple,
    TupleElement,
    TypeValue,
    Union,
    Unknown,
)

type JSON = object


class SerializationError(ValueError):
    """Raised for JSON that doesn't describe a value or expression."""


def to_json(value: TypeValue) -> JSON:
    if value is Never:
        return {'kind': 'never'}
    if value is Unknown:
        return {'kind': 'unknown'}
    if value is Any:
        return {'kind': 'any'}
    if isinstance(value, Literal):
        return {'kind': 'literal', 'type': value.kind, 'value': value.value}
    if isinstance(value, Primitive):
        return {'kind': 'primitive', 'name': value.name}
    if isinstance(value, Tuple):
        return {
            'kind': 'tuple',
            'elements': [
                {'value': to_json(e.value), 'optional': e.optional}
                for e in value.elements
            ],
            'rest': None if value.rest is None else to_json(value.rest),
        }
    if isinstance(value, Record):
        return {
            'kind': 'record',
            'fields': {
                name: {
                    'value': to_json(f.value),
                    'optional': f.optional,
                    'readonly': f.readonly,
                }
                for name, f in value.fields.items()
            },
        }
    if isinstance(value, Union):
        return {'kind': 'union', 'members': [to_json(m) for m in value.members]}
    if isinstance(value, Intersection):
        return {
            'kind': 'intersection',
            'members': [to_json(m) for m in value.members],
        }
    if isinstance(value, FunctionType):
        return {
            'kind': 'function',
            'parameters': to_json(value.parameters),
            'returns': to_json(value.returns),
        }
    if isinstance(value, TemplateString):
        return {
            'kind': 'template',
            'segments': [
                s if isinstance(s, str) else to_json(s) for s in value.segments
            ],
        }
    raise TypeError(f'cannot serialize {value!r}')


class TypeValueEncoder(json.JSONEncoder):
    """Extension of the default JSON Encoder that supports type values."""

    def default(self, obj):
        if isinstance(obj, TypeValue):
            return to_json(obj)
        return super().default(obj)


def _get(data: JSON, key: str, description: str) -> object:
    if not isinstance(data, Mapping) or key not in data:
        raise SerializationError(f'{description} is missing {key!r}: {data!r}')
    return data[key]


def _list(data: JSON, key: str, description: str) -> list[object]:
    items = _get(data, key, description)
    if not isinstance(items, list):
        raise SerializationError(f'{key!r} of {description} must be a list')
    return items


def _name(data: JSON, key: str, description: str) -> str:
    name = _get(data, key, description)
    if not isinstance(name, str):
        raise SerializationError(f'{key!r} of {description} must be a string')
    return name


def _flag(data: JSON, key: str) -> bool:
    return bool(data.get(key, False)) if isinstance(data, Mapping) else False


def _value_tuple(data: JSON) -> Tuple:
    elements = [
        TupleElement(
            value_from_json(_get(e, 'value', 'tuple element')),
            _flag(e, 'optional'),
        )
        for e in _list(data, 'elements', 'tuple')
    ]
    rest = data.get('rest') if isinstance(data, Mapping) else None
    return Tuple(elements, None if rest is None else value_from_json(rest))


_value_decoders: dict[str, Callable[[Mapping[str, object]], TypeValue]] = {
    'never': lambda _: Never,
    'unknown': lambda _: Unknown,
    'any': lambda _: Any,
    'literal': lambda d: Literal(
        _name(d, 'type', 'literal'),
        _get(d, 'value', 'literal'),  # type: ignore[arg-type]
    ),
    'primitive': lambda d: Primitive(_name(d, 'name', 'primitive')),
    'tuple': _value_tuple,
    'record': lambda d: Record(
        {
            name: Field(
                value_from_json(_get(f, 'value', 'field')),
                _flag(f, 'optional'),
                _flag(f, 'readonly'),
            )
            for name, f in _fields(d).items()
        }
    ),
    'union': lambda d: Union(
        map(value_from_json, _list(d, 'members', 'union'))
    ),
    'intersection': lambda d: Intersection(
        map(value_from_json, _list(d, 'members', 'intersection'))
    ),
    'function': lambda d: FunctionType(
        _value_tuple(_get(d, 'parameters', 'function')),
        value_from_json(_get(d, 'returns', 'function')),
    ),
    'template': lambda d: TemplateString(
        s if isinstance(s, str) else value_from_json(s)
        for s in _list(d, 'segments', 'template')
    ),
}


def _fields(data: Mapping[str, object]) -> Mapping[str, object]:
    fields = _get(data, 'fields', 'record')
    if not isinstance(fields, Mapping):
        raise SerializationError('fields must be an object')
    return fields


def value_from_json(data: JSON) -> TypeValue:
    kind = _name(data, 'kind', 'value')
    assert isinstance(data, Mapping)
    if kind not in _value_decoders:
        raise SerializationError(f'unknown kind of value {kind!r}')
    try:
        return _value_decoders[kind](data)
    except (TypeError, ValueError) as e:
        if isinstance(e, SerializationError):
            raise
        raise SerializationError(f'malformed {kind}: {e}') from e


def _tuple_item(data: JSON) -> TupleItem:
    if isinstance(data, Mapping) and data.get('node') == 'spread':
        return Spread(expression_from_json(_get(data, 'value', 'spread')))
    if isinstance(data, Mapping) and data.get('node') == 'optional':
        return OptionalElement(
            expression_from_json(_get(data, 'value', 'optional element'))
        )
    return expression_from_json(data)


def _modifier(data: Mapping[str, object], key: str) -> Modifier:
    try:
        return Modifier(data.get(key, 'keep'))
    except ValueError as e:
        raise SerializationError(f'{key!r} must be keep, add or remove') from e


def _optional_expression(
    data: Mapping[str, object], key: str
) -> Optional[Expression]:
    value = data.get(key)
    return None if value is None else expression_from_json(value)


_expression_decoders: dict[str, Callable[[Mapping[str, object]], Expression]] = {
    'ref': lambda d: Ref(_name(d, 'name', 'ref')),
    'lit': lambda d: Lit(value_from_json(_get(d, 'value', 'lit'))),
    'object': lambda d: ObjectExpr(
        {
            name: FieldExpr(
                expression_from_json(_get(f, 'value', 'field')),
                _flag(f, 'optional'),
                _flag(f, 'readonly'),
            )
            for name, f in _fields(d).items()
        }
    ),
    'tuple': lambda d: TupleExpr(
        map(_tuple_item, _list(d, 'elements', 'tuple')),
        _optional_expression(d, 'rest'),
    ),
    'union': lambda d: UnionExpr(
        map(expression_from_json, _list(d, 'members', 'union'))
    ),
    'intersection': lambda d: IntersectionExpr(
        map(expression_from_json, _list(d, 'members', 'intersection'))
    ),
    'conditional': lambda d: Conditional(
        expression_from_json(_get(d, 'check', 'conditional')),
        expression_from_json(_get(d, 'pattern', 'conditional')),
        expression_from_json(_get(d, 'then', 'conditional')),
        expression_from_json(_get(d, 'else', 'conditional')),
    ),
    'infer': lambda d: Infer(_name(d, 'name', 'infer')),
    'index': lambda d: IndexedAccess(
        expression_from_json(_get(d, 'target', 'index')),
        expression_from_json(_get(d, 'key', 'index')),
    ),
    'keyof': lambda d: Keyof(expression_from_json(_get(d, 'target', 'keyof'))),
    'mapped': lambda d: MappedType(
        _name(d, 'key', 'mapped'),
        expression_from_json(_get(d, 'in', 'mapped')),
        expression_from_json(_get(d, 'value', 'mapped')),
        key_remap=_optional_expression(d, 'as'),
        readonly_mod=_modifier(d, 'readonly'),
        optional_mod=_modifier(d, 'optional'),
    ),
    'template': lambda d: TemplateLiteral(
        p if isinstance(p, str) else expression_from_json(p)
        for p in _list(d, 'parts', 'template')
    ),
    'apply': lambda d: Apply(
        _name(d, 'name', 'apply'),
        map(
            expression_from_json,
            _list(d, 'args', 'apply') if 'args' in d else [],
        ),
    ),
    'function': lambda d: FunctionExpr(
        expression_from_json(_get(d, 'params', 'function')),
        expression_from_json(_get(d, 'returns', 'function')),
    ),
}


def expression_from_json(data: JSON) -> Expression:
    node = _name(data, 'node', 'expression')
    assert isinstance(data, Mapping)
    if node not in _expression_decoders:
        raise SerializationError(f'unknown kind of expression {node!r}')
    return _expression_decoders[node](data)


def _parameter_from_json(data: JSON) -> Parameter:
    if isinstance(data, str):
        return Parameter(data)
    name = _name(data, 'name', 'parameter')
    assert isinstance(data, Mapping)
    return Parameter(name, _optional_expression(data, 'default'))


def definition_from_json(data: JSON) -> Definition:
    """Decode `{"name": ..., "parameters": [...], "body": ...}`.

    A parameter is a name, or `{"name": ..., "default": expression}`."""
    parameters = (
        data.get('parameters', []) if isinstance(data, Mapping) else []
    )
    return Definition(
        _name(data, 'name', 'definition'),
        map(_parameter_from_json, parameters),
        expression_from_json(_get(data, 'body', 'definition')),
    )
