"""The closed domain of type values every computation works over.

Values are immutable and compared structurally. Constructors store what they
are given; `normalize` produces the canonical form (flattened, deduplicated
unions and intersections, merged template text), and the evaluator only ever
hands out normalized values.
"""

from __future__ import annotations

import abc
import itertools
import json
from typing import Iterable, Mapping, Optional, Sequence, Union as _Union

from typecalc.orderedset import InsertionOrderedSet

# Primitives whose inhabitants are pairwise disjoint, so an intersection of two
# different ones is empty.
VALUE_PRIMITIVES = frozenset(
    ['string', 'number', 'boolean', 'bigint', 'symbol', 'null', 'undefined']
)
LITERAL_KINDS = frozenset(['string', 'number', 'boolean'])


class TypeValue(abc.ABC):
    _cached_hash: Optional[int] = None

    @abc.abstractmethod
    def _key(self) -> object:
        pass

    @abc.abstractmethod
    def _normalize(self) -> TypeValue:
        pass

    @abc.abstractmethod
    def __str__(self) -> str:
        pass

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, TypeValue):
            return NotImplemented
        return type(self) is type(other) and self._key() == other._key()

    def __hash__(self) -> int:
        if self._cached_hash is None:
            self._cached_hash = hash((type(self).__qualname__, self._key()))
        return self._cached_hash

    def _str_as_operand(self) -> str:
        """The string form, parenthesized where an operator would bind it."""
        return str(self)


class _NeverType(TypeValue):
    def _key(self) -> object:
        return ()

    def _normalize(self) -> TypeValue:
        return self

    def __str__(self) -> str:
        return 'never'

    def __repr__(self) -> str:
        return 'Never'


class _UnknownType(TypeValue):
    def _key(self) -> object:
        return ()

    def _normalize(self) -> TypeValue:
        return self

    def __str__(self) -> str:
        return 'unknown'

    def __repr__(self) -> str:
        return 'Unknown'


class _AnyType(TypeValue):
    def _key(self) -> object:
        return ()

    def _normalize(self) -> TypeValue:
        return self

    def __str__(self) -> str:
        return 'any'

    def __repr__(self) -> str:
        return 'Any'


Never = _NeverType()
Unknown = _UnknownType()
Any = _AnyType()


class Literal(TypeValue):
    """An exact string, number or boolean value."""

    def __init__(self, kind: str, value: str | int | float | bool) -> None:
        if kind not in LITERAL_KINDS:
            raise ValueError(f'{kind!r} is not a literal kind')
        expected = {'string': str, 'number': (int, float), 'boolean': bool}
        if not isinstance(value, expected[kind]) or (
            kind == 'number' and isinstance(value, bool)
        ):
            raise ValueError(f'{value!r} is not a {kind} literal')
        self.kind = kind
        self.value = value

    @classmethod
    def of(cls, value: str | int | float | bool) -> Literal:
        if isinstance(value, bool):
            return cls('boolean', value)
        if isinstance(value, (int, float)):
            return cls('number', value)
        return cls('string', value)

    def _key(self) -> object:
        return (self.kind, self.value)

    def _normalize(self) -> TypeValue:
        return self

    def to_template_text(self) -> str:
        """The text this literal contributes inside a template literal."""
        if self.kind == 'boolean':
            return 'true' if self.value else 'false'
        if self.kind == 'number':
            if isinstance(self.value, float) and self.value.is_integer():
                return str(int(self.value))
            return str(self.value)
        return str(self.value)

    def __str__(self) -> str:
        if self.kind == 'string':
            return json.dumps(self.value)
        return self.to_template_text()

    def __repr__(self) -> str:
        return f'Literal({self.kind!r}, {self.value!r})'


class Primitive(TypeValue):
    def __init__(self, name: str) -> None:
        self.name = name

    def _key(self) -> object:
        return self.name

    def _normalize(self) -> TypeValue:
        return self

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f'Primitive({self.name!r})'


string_type = Primitive('string')
number_type = Primitive('number')
boolean_type = Primitive('boolean')
object_type = Primitive('object')
undefined_type = Primitive('undefined')
null_type = Primitive('null')
void_type = Primitive('void')


class TupleElement:
    def __init__(self, value: TypeValue, optional: bool = False) -> None:
        self.value = value
        self.optional = optional

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TupleElement):
            return NotImplemented
        return self.value == other.value and self.optional == other.optional

    def __hash__(self) -> int:
        return hash((self.value, self.optional))

    def __str__(self) -> str:
        return f'{self.value}?' if self.optional else str(self.value)

    def __repr__(self) -> str:
        if self.optional:
            return f'TupleElement({self.value!r}, optional=True)'
        return f'TupleElement({self.value!r})'


class Tuple(TypeValue):
    """Positional types, with an optional variadic tail.

    `rest` is the element type of the tail, so an array type `number[]` is
    `Tuple([], rest=number_type)`."""

    def __init__(
        self,
        elements: Iterable[TupleElement | TypeValue] = (),
        rest: Optional[TypeValue] = None,
    ) -> None:
        self.elements = tuple(
            e if isinstance(e, TupleElement) else TupleElement(e)
            for e in elements
        )
        self.rest = rest

    @property
    def element_types(self) -> tuple[TypeValue, ...]:
        return tuple(e.value for e in self.elements)

    @property
    def required_length(self) -> int:
        return sum(1 for e in self.elements if not e.optional)

    def is_fixed_length(self) -> bool:
        return self.rest is None and self.required_length == len(
            self.elements
        )

    def _key(self) -> object:
        return (self.elements, self.rest)

    def _normalize(self) -> TypeValue:
        return Tuple(
            [TupleElement(normalize(e.value), e.optional) for e in self.elements],
            None if self.rest is None else normalize(self.rest),
        )

    def __str__(self) -> str:
        if not self.elements and self.rest is not None:
            return f'{self.rest._str_as_operand()}[]'
        parts = [str(e) for e in self.elements]
        if self.rest is not None:
            parts.append(f'...{self.rest._str_as_operand()}[]')
        return '[' + ', '.join(parts) + ']'

    def __repr__(self) -> str:
        if self.rest is None:
            return f'Tuple({list(self.elements)!r})'
        return f'Tuple({list(self.elements)!r}, rest={self.rest!r})'


class Field:
    def __init__(
        self, value: TypeValue, optional: bool = False, readonly: bool = False
    ) -> None:
        self.value = value
        self.optional = optional
        self.readonly = readonly

    def replace(
        self,
        value: Optional[TypeValue] = None,
        optional: Optional[bool] = None,
        readonly: Optional[bool] = None,
    ) -> Field:
        return Field(
            self.value if value is None else value,
            self.optional if optional is None else optional,
            self.readonly if readonly is None else readonly,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return NotImplemented
        return (self.value, self.optional, self.readonly) == (
            other.value,
            other.optional,
            other.readonly,
        )

    def __hash__(self) -> int:
        return hash((self.value, self.optional, self.readonly))

    def __repr__(self) -> str:
        return (
            f'Field({self.value!r}, optional={self.optional!r}, '
            f'readonly={self.readonly!r})'
        )


class Record(TypeValue):
    """Structural object types.

    Field order takes no part in equality; it is kept so that mapped types
    iterate deterministically."""

    def __init__(self, fields: Mapping[str, Field | TypeValue]) -> None:
        self.fields = {
            name: f if isinstance(f, Field) else Field(f)
            for name, f in fields.items()
        }

    def _key(self) -> object:
        return frozenset(self.fields.items())

    def _normalize(self) -> TypeValue:
        return Record(
            {
                name: f.replace(value=normalize(f.value))
                for name, f in self.fields.items()
            }
        )

    def __str__(self) -> str:
        if not self.fields:
            return '{}'
        parts = []
        for name, f in self.fields.items():
            key = name if name.isidentifier() else json.dumps(name)
            parts.append(
                f'{"readonly " if f.readonly else ""}{key}'
                f'{"?" if f.optional else ""}: {f.value}'
            )
        return '{' + '; '.join(parts) + '}'

    def __repr__(self) -> str:
        return f'Record({self.fields!r})'


class Union(TypeValue):
    def __init__(self, members: Iterable[TypeValue]) -> None:
        self.members = InsertionOrderedSet(members)

    def _key(self) -> object:
        return self.members

    def _normalize(self) -> TypeValue:
        return _normalize_union(self.members)

    def _str_as_operand(self) -> str:
        return f'({self})'

    def __str__(self) -> str:
        if not self.members:
            return 'never'
        return ' | '.join(m._str_as_operand() for m in self.members)

    def __repr__(self) -> str:
        return f'Union({list(self.members)!r})'


class Intersection(TypeValue):
    def __init__(self, members: Iterable[TypeValue]) -> None:
        self.members = InsertionOrderedSet(members)

    def _key(self) -> object:
        return self.members

    def _normalize(self) -> TypeValue:
        return _normalize_intersection(self.members)

    def _str_as_operand(self) -> str:
        return f'({self})'

    def __str__(self) -> str:
        if not self.members:
            return 'unknown'
        return ' & '.join(m._str_as_operand() for m in self.members)

    def __repr__(self) -> str:
        return f'Intersection({list(self.members)!r})'


class FunctionType(TypeValue):
    """Function types, with the parameter list kept as a tuple type."""

    def __init__(
        self, params: Sequence[TypeValue] | Tuple, returns: TypeValue
    ) -> None:
        self.parameters = params if isinstance(params, Tuple) else Tuple(params)
        self.returns = returns

    @property
    def params(self) -> tuple[TypeValue, ...]:
        return self.parameters.element_types

    def _key(self) -> object:
        return (self.parameters, self.returns)

    def _normalize(self) -> TypeValue:
        parameters = normalize(self.parameters)
        assert isinstance(parameters, Tuple)
        return FunctionType(parameters, normalize(self.returns))

    def _str_as_operand(self) -> str:
        return f'({self})'

    def __str__(self) -> str:
        params = [
            f'a{i}{"?" if e.optional else ""}: {e.value}'
            for i, e in enumerate(self.parameters.elements)
        ]
        if self.parameters.rest is not None:
            params.append(f'...rest: {self.parameters.rest._str_as_operand()}[]')
        return f'({", ".join(params)}) => {self.returns}'

    def __repr__(self) -> str:
        return f'FunctionType({self.parameters!r}, {self.returns!r})'


type TemplateSegment = _Union[str, TypeValue]


class TemplateString(TypeValue):
    """String types built from literal text and type holes, e.g. `on${string}`."""

    def __init__(self, segments: Iterable[TemplateSegment]) -> None:
        self.segments = tuple(segments)

    def _key(self) -> object:
        return self.segments

    def _normalize(self) -> TypeValue:
        holes = [normalize(s) for s in self.segments if isinstance(s, TypeValue)]
        if any(h is Never for h in holes):
            return Never
        choices = [h.members if isinstance(h, Union) else (h,) for h in holes]
        results = []
        for combination in itertools.product(*choices):
            filled = iter(combination)
            results.append(
                _collapse_template(
                    [
                        next(filled) if isinstance(s, TypeValue) else s
                        for s in self.segments
                    ]
                )
            )
        if len(results) == 1:
            return results[0]
        return normalize(Union(results))

    def __str__(self) -> str:
        body = ''.join(
            s.replace('`', '\\`') if isinstance(s, str) else f'${{{s}}}'
            for s in self.segments
        )
        return f'`{body}`'

    def __repr__(self) -> str:
        return f'TemplateString({list(self.segments)!r})'


def _collapse_template(segments: Sequence[TemplateSegment]) -> TypeValue:
    merged: list[TemplateSegment] = []
    for segment in segments:
        if isinstance(segment, Literal):
            segment = segment.to_template_text()
        if isinstance(segment, TemplateString):
            pieces: Sequence[TemplateSegment] = segment.segments
        else:
            pieces = [segment]
        for piece in pieces:
            if isinstance(piece, str):
                if not piece:
                    continue
                if merged and isinstance(merged[-1], str):
                    merged[-1] += piece
                    continue
            merged.append(piece)
    if all(isinstance(s, str) for s in merged):
        return Literal('string', ''.join(str(s) for s in merged))
    if merged == [string_type]:
        return string_type
    return TemplateString(merged)


def _flatten[T: (Union, Intersection)](
    members: Iterable[TypeValue], kind: type[T]
) -> list[TypeValue]:
    flat = []
    for member in members:
        member = normalize(member)
        if isinstance(member, kind):
            flat.extend(member.members)
        else:
            flat.append(member)
    return flat


def _normalize_union(members: Iterable[TypeValue]) -> TypeValue:
    flat = _flatten(members, Union)
    if Any in flat:
        return Any
    if Unknown in flat:
        return Unknown
    unique = InsertionOrderedSet(m for m in flat if m is not Never)
    primitive_names = {m.name for m in unique if isinstance(m, Primitive)}
    # A literal adds nothing next to its own primitive.
    reduced = [
        m
        for m in unique
        if not (isinstance(m, Literal) and m.kind in primitive_names)
    ]
    if not reduced:
        return Never
    if len(reduced) == 1:
        return reduced[0]
    return Union(reduced)


def _normalize_intersection(members: Iterable[TypeValue]) -> TypeValue:
    flat = _flatten(members, Intersection)
    if any(isinstance(m, Union) for m in flat):
        choices = [m.members if isinstance(m, Union) else (m,) for m in flat]
        return normalize(
            Union(Intersection(c) for c in itertools.product(*choices))
        )
    if Never in flat:
        return Never
    if Any in flat:
        return Any
    unique = InsertionOrderedSet(m for m in flat if m is not Unknown)
    literals = [m for m in unique if isinstance(m, Literal)]
    primitives = [
        m
        for m in unique
        if isinstance(m, Primitive) and m.name in VALUE_PRIMITIVES
    ]
    if len(literals) > 1 or len(primitives) > 1:
        return Never
    if literals and primitives:
        if literals[0].kind != primitives[0].name:
            return Never
        unique = unique - {primitives[0]}
    if any(isinstance(m, (Record, Tuple, FunctionType)) for m in unique):
        unique = unique - {object_type}
    if not unique:
        return Unknown
    if len(unique) == 1:
        return next(iter(unique))
    return Intersection(unique)


def normalize(value: TypeValue) -> TypeValue:
    """Put `value` in canonical form. Idempotent."""
    return value._normalize()


def structurally_equal(a: TypeValue, b: TypeValue) -> bool:
    return normalize(a) == normalize(b)


def union_of(*members: TypeValue) -> TypeValue:
    return normalize(Union(members))


def intersection_of(*members: TypeValue) -> TypeValue:
    return normalize(Intersection(members))


def literal_union(*values: str | int | float | bool) -> TypeValue:
    return union_of(*map(Literal.of, values))
