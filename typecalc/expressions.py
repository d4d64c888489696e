"""Expression trees describing one type computation.

Expressions are immutable once built and can be evaluated any number of times
under different environments.
"""

from __future__ import annotations

import abc
import enum
import functools
import operator
from typing import Iterable, Mapping, Optional, Sequence

from typecalc.orderedset import InsertionOrderedSet
from typecalc.values import TypeValue


class Expression(abc.ABC):
    @property
    @abc.abstractmethod
    def children(self) -> Sequence[Expression]:
        pass

    @functools.cached_property
    def infer_names(self) -> InsertionOrderedSet[str]:
        """Names of the `infer` placeholders this expression binds."""
        return functools.reduce(
            operator.or_,
            (child.infer_names for child in self.children),
            InsertionOrderedSet[str](),
        )

    def contains_infer(self) -> bool:
        return bool(self.infer_names)

    @abc.abstractmethod
    def __str__(self) -> str:
        pass


class Ref(Expression):
    def __init__(self, name: str) -> None:
        self.name = name

    @property
    def children(self) -> Sequence[Expression]:
        return []

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f'Ref({self.name!r})'


class Lit(Expression):
    def __init__(self, value: TypeValue) -> None:
        self.value = value

    @property
    def children(self) -> Sequence[Expression]:
        return []

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f'Lit({self.value!r})'


class FieldExpr:
    def __init__(
        self, value: Expression, optional: bool = False, readonly: bool = False
    ) -> None:
        self.value = value
        self.optional = optional
        self.readonly = readonly

    def __repr__(self) -> str:
        return (
            f'FieldExpr({self.value!r}, optional={self.optional!r}, '
            f'readonly={self.readonly!r})'
        )


class ObjectExpr(Expression):
    def __init__(self, fields: Mapping[str, Expression | FieldExpr]) -> None:
        self.fields = {
            name: f if isinstance(f, FieldExpr) else FieldExpr(f)
            for name, f in fields.items()
        }

    @property
    def children(self) -> Sequence[Expression]:
        return [f.value for f in self.fields.values()]

    def __str__(self) -> str:
        return (
            '{'
            + '; '.join(
                f'{"readonly " if f.readonly else ""}{name}'
                f'{"?" if f.optional else ""}: {f.value}'
                for name, f in self.fields.items()
            )
            + '}'
        )

    def __repr__(self) -> str:
        return f'ObjectExpr({self.fields!r})'


class Spread:
    """Inlines the elements of a tuple-valued expression into a tuple."""

    def __init__(self, value: Expression) -> None:
        self.value = value

    def __str__(self) -> str:
        return f'...{self.value}'

    def __repr__(self) -> str:
        return f'Spread({self.value!r})'


class OptionalElement:
    def __init__(self, value: Expression) -> None:
        self.value = value

    def __str__(self) -> str:
        return f'{self.value}?'

    def __repr__(self) -> str:
        return f'OptionalElement({self.value!r})'


type TupleItem = Expression | Spread | OptionalElement


class TupleExpr(Expression):
    def __init__(
        self, elements: Iterable[TupleItem], rest: Optional[Expression] = None
    ) -> None:
        self.elements = tuple(elements)
        self.rest = rest

    @property
    def items(self) -> tuple[TupleItem, ...]:
        """The elements, with `rest` folded in as a trailing spread."""
        if self.rest is None:
            return self.elements
        return (*self.elements, Spread(self.rest))

    @property
    def children(self) -> Sequence[Expression]:
        return [
            item if isinstance(item, Expression) else item.value
            for item in self.items
        ]

    def __str__(self) -> str:
        return '[' + ', '.join(map(str, self.items)) + ']'

    def __repr__(self) -> str:
        if self.rest is None:
            return f'TupleExpr({list(self.elements)!r})'
        return f'TupleExpr({list(self.elements)!r}, rest={self.rest!r})'


class UnionExpr(Expression):
    def __init__(self, members: Iterable[Expression]) -> None:
        self.members = tuple(members)

    @property
    def children(self) -> Sequence[Expression]:
        return self.members

    def __str__(self) -> str:
        return '(' + ' | '.join(map(str, self.members)) + ')'

    def __repr__(self) -> str:
        return f'UnionExpr({list(self.members)!r})'


class IntersectionExpr(Expression):
    def __init__(self, members: Iterable[Expression]) -> None:
        self.members = tuple(members)

    @property
    def children(self) -> Sequence[Expression]:
        return self.members

    def __str__(self) -> str:
        return '(' + ' & '.join(map(str, self.members)) + ')'

    def __repr__(self) -> str:
        return f'IntersectionExpr({list(self.members)!r})'


class Conditional(Expression):
    def __init__(
        self,
        check: Expression,
        pattern: Expression,
        then_branch: Expression,
        else_branch: Expression,
    ) -> None:
        self.check = check
        self.pattern = pattern
        self.then_branch = then_branch
        self.else_branch = else_branch

    @property
    def children(self) -> Sequence[Expression]:
        return [self.check, self.pattern, self.then_branch, self.else_branch]

    @functools.cached_property
    def infer_names(self) -> InsertionOrderedSet[str]:
        # The pattern's placeholders are local to this conditional.
        return functools.reduce(
            operator.or_,
            (
                child.infer_names
                for child in (self.check, self.then_branch, self.else_branch)
            ),
            InsertionOrderedSet[str](),
        )

    def __str__(self) -> str:
        return (
            f'({self.check} extends {self.pattern} ? {self.then_branch} : '
            f'{self.else_branch})'
        )

    def __repr__(self) -> str:
        return (
            f'Conditional({self.check!r}, {self.pattern!r}, '
            f'{self.then_branch!r}, {self.else_branch!r})'
        )


class Infer(Expression):
    def __init__(self, name: str) -> None:
        self.name = name

    @property
    def children(self) -> Sequence[Expression]:
        return []

    @functools.cached_property
    def infer_names(self) -> InsertionOrderedSet[str]:
        return InsertionOrderedSet([self.name])

    def __str__(self) -> str:
        return f'infer {self.name}'

    def __repr__(self) -> str:
        return f'Infer({self.name!r})'


class IndexedAccess(Expression):
    def __init__(self, target: Expression, key: Expression) -> None:
        self.target = target
        self.key = key

    @property
    def children(self) -> Sequence[Expression]:
        return [self.target, self.key]

    def __str__(self) -> str:
        return f'{self.target}[{self.key}]'

    def __repr__(self) -> str:
        return f'IndexedAccess({self.target!r}, {self.key!r})'


class Keyof(Expression):
    def __init__(self, target: Expression) -> None:
        self.target = target

    @property
    def children(self) -> Sequence[Expression]:
        return [self.target]

    def __str__(self) -> str:
        return f'keyof {self.target}'

    def __repr__(self) -> str:
        return f'Keyof({self.target!r})'


class Modifier(enum.Enum):
    KEEP = 'keep'
    ADD = 'add'
    REMOVE = 'remove'

    def apply(self, flag: bool) -> bool:
        if self is Modifier.ADD:
            return True
        if self is Modifier.REMOVE:
            return False
        return flag


class MappedType(Expression):
    """`{[key_name in source_keys as key_remap]: value}` with modifiers."""

    def __init__(
        self,
        key_name: str,
        source_keys: Expression,
        value: Expression,
        key_remap: Optional[Expression] = None,
        readonly_mod: Modifier = Modifier.KEEP,
        optional_mod: Modifier = Modifier.KEEP,
    ) -> None:
        self.key_name = key_name
        self.source_keys = source_keys
        self.value = value
        self.key_remap = key_remap
        self.readonly_mod = readonly_mod
        self.optional_mod = optional_mod

    @property
    def children(self) -> Sequence[Expression]:
        children = [self.source_keys, self.value]
        if self.key_remap is not None:
            children.append(self.key_remap)
        return children

    def __str__(self) -> str:
        readonly = {
            Modifier.KEEP: '',
            Modifier.ADD: 'readonly ',
            Modifier.REMOVE: '-readonly ',
        }[self.readonly_mod]
        optional = {
            Modifier.KEEP: '',
            Modifier.ADD: '?',
            Modifier.REMOVE: '-?',
        }[self.optional_mod]
        remap = '' if self.key_remap is None else f' as {self.key_remap}'
        return (
            f'{{{readonly}[{self.key_name} in {self.source_keys}{remap}]'
            f'{optional}: {self.value}}}'
        )

    def __repr__(self) -> str:
        return (
            f'MappedType({self.key_name!r}, {self.source_keys!r}, '
            f'{self.value!r}, key_remap={self.key_remap!r}, '
            f'readonly_mod={self.readonly_mod}, '
            f'optional_mod={self.optional_mod})'
        )


class TemplateLiteral(Expression):
    def __init__(self, parts: Iterable[str | Expression]) -> None:
        self.parts = tuple(parts)

    @property
    def children(self) -> Sequence[Expression]:
        return [p for p in self.parts if isinstance(p, Expression)]

    def __str__(self) -> str:
        return (
            '`'
            + ''.join(
                p if isinstance(p, str) else f'${{{p}}}' for p in self.parts
            )
            + '`'
        )

    def __repr__(self) -> str:
        return f'TemplateLiteral({list(self.parts)!r})'


class Apply(Expression):
    """Instantiates a named, possibly recursive, definition."""

    def __init__(self, name: str, args: Iterable[Expression] = ()) -> None:
        self.name = name
        self.args = tuple(args)

    @property
    def children(self) -> Sequence[Expression]:
        return self.args

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f'{self.name}<{", ".join(map(str, self.args))}>'

    def __repr__(self) -> str:
        return f'Apply({self.name!r}, {list(self.args)!r})'


class FunctionExpr(Expression):
    def __init__(self, params: Expression, returns: Expression) -> None:
        self.params = params
        self.returns = returns

    @property
    def children(self) -> Sequence[Expression]:
        return [self.params, self.returns]

    def __str__(self) -> str:
        return f'((...args: {self.params}) => {self.returns})'

    def __repr__(self) -> str:
        return f'FunctionExpr({self.params!r}, {self.returns!r})'
