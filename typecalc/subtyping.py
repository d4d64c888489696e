"""Assignability between type values.

This is only as much of a subtyping relation as conditional types need: a
subject is compared with an evaluated pattern that contains no `infer`
placeholders.
"""

from __future__ import annotations

import re
from typing import Optional

from typecalc.templates import Hole, split
from typecalc.values import (
    Any,
    FunctionType,
    Intersection,
    Literal,
    Never,
    Primitive,
    Record,
    TemplateString,
    Tuple,
    TypeValue,
    Union,
    Unknown,
    normalize,
)

_numeric_text = re.compile(r'[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')
_bigint_text = re.compile(r'-?\d+')
_nullish = frozenset(['null', 'undefined', 'void'])


def is_assignable(subtype: TypeValue, supertype: TypeValue) -> bool:
    return _assignable(normalize(subtype), normalize(supertype))


def _assignable(sub: TypeValue, sup: TypeValue) -> bool:
    if sub == sup or sup is Any or sup is Unknown or sub is Never:
        return True
    if sub is Any:
        return sup is not Never
    if sup is Never or sub is Unknown:
        return False
    if isinstance(sub, Union):
        return all(_assignable(m, sup) for m in sub.members)
    if isinstance(sup, Union):
        return any(_assignable(sub, m) for m in sup.members)
    if isinstance(sup, Intersection):
        return all(_assignable(sub, m) for m in sup.members)
    if isinstance(sub, Intersection):
        if isinstance(sup, Record):
            merged = merge_records(sub)
            if merged is not None and _record_assignable(merged, sup):
                return True
        return any(_assignable(m, sup) for m in sub.members)
    if isinstance(sup, Primitive):
        return _assignable_to_primitive(sub, sup.name)
    if isinstance(sup, TemplateString):
        if isinstance(sub, Literal) and sub.kind == 'string':
            holes = [
                s if isinstance(s, str) else value_hole(s)
                for s in sup.segments
            ]
            return split(holes, sub.value, exhaustive=True) is not None
        return False
    if isinstance(sup, Tuple):
        return isinstance(sub, Tuple) and _tuple_assignable(sub, sup)
    if isinstance(sup, Record):
        if isinstance(sub, Record):
            return _record_assignable(sub, sup)
        # Anything non-nullish fits an object type with no required fields.
        return all(f.optional for f in sup.fields.values()) and not (
            isinstance(sub, Primitive) and sub.name in _nullish
        )
    if isinstance(sup, FunctionType):
        return isinstance(sub, FunctionType) and _function_assignable(
            sub, sup
        )
    return False


def _assignable_to_primitive(sub: TypeValue, name: str) -> bool:
    if isinstance(sub, Literal):
        return sub.kind == name
    if isinstance(sub, Primitive):
        return sub.name == name or (name == 'void' and sub.name == 'undefined')
    if isinstance(sub, TemplateString):
        return name == 'string'
    if isinstance(sub, (Record, Tuple, FunctionType)):
        return name == 'object'
    return False


def _tuple_assignable(sub: Tuple, sup: Tuple) -> bool:
    if sub.rest is not None and sup.rest is None:
        return False
    if len(sub.elements) > len(sup.elements) and sup.rest is None:
        return False
    for i, element in enumerate(sub.elements):
        if i < len(sup.elements):
            target = sup.elements[i]
            if element.optional and not target.optional:
                return False
            if not _assignable(element.value, target.value):
                return False
        else:
            assert sup.rest is not None
            if not _assignable(element.value, sup.rest):
                return False
    for target in sup.elements[len(sub.elements) :]:
        if not target.optional:
            return False
        if sub.rest is not None and not _assignable(sub.rest, target.value):
            return False
    if sub.rest is not None:
        assert sup.rest is not None
        return _assignable(sub.rest, sup.rest)
    return True


def _record_assignable(sub: Record, sup: Record) -> bool:
    for name, target in sup.fields.items():
        field = sub.fields.get(name)
        if field is None:
            if not target.optional:
                return False
            continue
        if field.optional and not target.optional:
            return False
        if not _assignable(field.value, target.value):
            return False
    return True


def _function_assignable(sub: FunctionType, sup: FunctionType) -> bool:
    sub_params, sup_params = sub.parameters, sup.parameters
    if (
        sub_params.required_length > len(sup_params.elements)
        and sup_params.rest is None
    ):
        return False
    # Parameters are compared contravariantly.
    for i, element in enumerate(sub_params.elements):
        if i < len(sup_params.elements):
            provided: Optional[TypeValue] = sup_params.elements[i].value
        else:
            provided = sup_params.rest
        if provided is not None and not _assignable(provided, element.value):
            return False
    if sub_params.rest is not None and sup_params.rest is not None:
        if not _assignable(sup_params.rest, sub_params.rest):
            return False
    return _assignable(sub.returns, sup.returns)


def merge_records(value: Intersection) -> Optional[Record]:
    """View an intersection of records as one record, or None if it isn't one."""
    fields = {}
    for member in value.members:
        if not isinstance(member, Record):
            return None
        for name, field in member.fields.items():
            if name in fields:
                previous = fields[name]
                field = field.replace(
                    value=normalize(Intersection([previous.value, field.value])),
                    optional=previous.optional and field.optional,
                    readonly=previous.readonly or field.readonly,
                )
            fields[name] = field
    return Record(fields)


def string_alternatives(value: TypeValue) -> Optional[tuple[str, ...]]:
    """The finite set of texts a template hole of this value stands for."""
    if isinstance(value, Literal):
        return (value.to_template_text(),)
    if isinstance(value, Union) and all(
        isinstance(m, Literal) for m in value.members
    ):
        return tuple(
            m.to_template_text() for m in value.members if isinstance(m, Literal)
        )
    return None


def value_hole(value: TypeValue) -> Hole:
    alternatives = string_alternatives(value)
    if alternatives is not None:
        return Hole(f'${{{value}}}', alternatives)
    return Hole(f'${{{value}}}', accepts=lambda piece: text_fits(piece, value))


def text_fits(piece: str, value: TypeValue) -> bool:
    """Whether `piece` is one of the strings the hole `${value}` produces."""
    if value is Any or value is Unknown:
        return True
    if isinstance(value, Literal):
        return piece == value.to_template_text()
    if isinstance(value, Primitive):
        if value.name == 'string':
            return True
        if value.name == 'number':
            return _numeric_text.fullmatch(piece) is not None
        if value.name == 'bigint':
            return _bigint_text.fullmatch(piece) is not None
        if value.name == 'boolean':
            return piece in ('true', 'false')
        if value.name in ('null', 'undefined'):
            return piece == value.name
        return False
    if isinstance(value, TemplateString):
        holes = [
            s if isinstance(s, str) else value_hole(s) for s in value.segments
        ]
        return split(holes, piece, exhaustive=True) is not None
    if isinstance(value, Union):
        return any(text_fits(piece, m) for m in value.members)
    if isinstance(value, Intersection):
        return all(text_fits(piece, m) for m in value.members)
    return False
