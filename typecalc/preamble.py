"""A library of common utility definitions, written as expressions.

`load_preamble` registers them in a definition table, so that user programs
can build on `Pick`, `Reverse`, `UnionToIntersection` and friends.
"""

from __future__ import annotations

from typing import Optional

from typecalc.definitions import DefinitionTable, Parameter, default_definitions
from typecalc.expressions import (
    Apply,
    Conditional,
    Expression,
    FunctionExpr,
    IndexedAccess,
    Infer,
    IntersectionExpr,
    Keyof,
    Lit,
    MappedType,
    Modifier,
    ObjectExpr,
    Ref,
    Spread,
    TemplateLiteral,
    TupleExpr,
    UnionExpr,
)
from typecalc.values import (
    Any,
    Literal,
    Never,
    Record,
    Tuple,
    null_type,
    number_type,
    undefined_type,
    void_type,
)

_T = Ref('T')
_U = Ref('U')
_K = Ref('K')
_P = Ref('P')
_never = Lit(Never)
_any = Lit(Any)
_any_array = Lit(Tuple((), rest=Any))
_true = Lit(Literal('boolean', True))
_false = Lit(Literal('boolean', False))
_empty = TupleExpr([])
_whitespace = UnionExpr(Lit(Literal('string', c)) for c in ' \n\t')


def _is_true(
    check: Expression, then: Expression, otherwise: Expression
) -> Conditional:
    return Conditional(TupleExpr([check]), TupleExpr([_true]), then, otherwise)


def _homomorphic(
    value: Expression,
    readonly_mod: Modifier = Modifier.KEEP,
    optional_mod: Modifier = Modifier.KEEP,
) -> MappedType:
    return MappedType(
        'P',
        Keyof(_T),
        value,
        readonly_mod=readonly_mod,
        optional_mod=optional_mod,
    )


def _not_a_function(then: Expression) -> Conditional:
    return Conditional(_T, FunctionExpr(_any_array, _any), _T, then)


def _keys_where_optional(optional: bool) -> Keyof:
    # `{} extends Pick<T, K>` holds exactly when K is optional in T.
    check = Conditional(
        Lit(Record({})),
        Apply('Pick', [_T, _K]),
        _K if optional else _never,
        _never if optional else _K,
    )
    return Keyof(
        MappedType('K', Keyof(_T), IndexedAccess(_T, _K), key_remap=check)
    )


_definitions: list[tuple[str, list[str | Parameter], Expression]] = [
    ('Pick', ['T', 'K'], MappedType('P', _K, IndexedAccess(_T, _P))),
    (
        'Omit',
        ['T', 'K'],
        MappedType(
            'P',
            Keyof(_T),
            IndexedAccess(_T, _P),
            key_remap=Conditional(_P, _K, _never, _P),
        ),
    ),
    ('Readonly', ['T'], _homomorphic(IndexedAccess(_T, _P), Modifier.ADD)),
    (
        'Partial',
        ['T'],
        _homomorphic(IndexedAccess(_T, _P), optional_mod=Modifier.ADD),
    ),
    (
        'Required',
        ['T'],
        _homomorphic(IndexedAccess(_T, _P), optional_mod=Modifier.REMOVE),
    ),
    ('Exclude', ['T', 'U'], Conditional(_T, _U, _never, _T)),
    ('Extract', ['T', 'U'], Conditional(_T, _U, _T, _never)),
    (
        'NonNullable',
        ['T'],
        Conditional(
            _T, UnionExpr([Lit(null_type), Lit(undefined_type)]), _never, _T
        ),
    ),
    (
        'First',
        ['T'],
        Conditional(
            _T, TupleExpr([Infer('F')], rest=_any_array), Ref('F'), _never
        ),
    ),
    (
        'Last',
        ['T'],
        Conditional(
            _T, TupleExpr([Spread(_any_array), Infer('L')]), Ref('L'), _never
        ),
    ),
    (
        'Pop',
        ['T'],
        Conditional(
            _T, TupleExpr([Spread(Infer('R')), _any]), Ref('R'), _empty
        ),
    ),
    (
        'Tail',
        ['T'],
        Conditional(_T, TupleExpr([_any], rest=Infer('R')), Ref('R'), _empty),
    ),
    ('Length', ['T'], IndexedAccess(_T, Lit(Literal('string', 'length')))),
    ('Concat', ['T', 'U'], TupleExpr([Spread(_T), Spread(_U)])),
    ('Push', ['T', 'U'], TupleExpr([Spread(_T), _U])),
    ('Unshift', ['T', 'U'], TupleExpr([_U, Spread(_T)])),
    (
        'Reverse',
        ['T'],
        Conditional(
            _T,
            TupleExpr([Infer('F')], rest=Infer('R')),
            TupleExpr([Spread(Apply('Reverse', [Ref('R')])), Ref('F')]),
            _empty,
        ),
    ),
    (
        'Zip',
        ['T', 'U'],
        Conditional(
            _T,
            TupleExpr([Infer('TF')], rest=Infer('TR')),
            Conditional(
                _U,
                TupleExpr([Infer('UF')], rest=Infer('UR')),
                TupleExpr(
                    [
                        TupleExpr([Ref('TF'), Ref('UF')]),
                        Spread(Apply('Zip', [Ref('TR'), Ref('UR')])),
                    ]
                ),
                _empty,
            ),
            _empty,
        ),
    ),
    (
        'Includes',
        ['T', 'U'],
        Conditional(
            _T,
            TupleExpr([Infer('F')], rest=Infer('R')),
            _is_true(
                Apply('Equal', [Ref('F'), _U]),
                _true,
                Apply('Includes', [Ref('R'), _U]),
            ),
            _false,
        ),
    ),
    (
        'Equal',
        ['X', 'Y'],
        _is_true(
            Apply('IsAny', [Ref('X')]),
            Apply('IsAny', [Ref('Y')]),
            _is_true(
                Apply('IsAny', [Ref('Y')]),
                _false,
                Conditional(
                    TupleExpr([Ref('X')]),
                    TupleExpr([Ref('Y')]),
                    Conditional(
                        TupleExpr([Ref('Y')]),
                        TupleExpr([Ref('X')]),
                        _true,
                        _false,
                    ),
                    _false,
                ),
            ),
        ),
    ),
    ('TupleToUnion', ['T'], IndexedAccess(_T, Lit(number_type))),
    (
        'ReturnType',
        ['T'],
        Conditional(_T, FunctionExpr(_any_array, Infer('R')), Ref('R'), _never),
    ),
    (
        'Parameters',
        ['T'],
        Conditional(_T, FunctionExpr(Infer('P'), _any), _P, _never),
    ),
    (
        'FlipArguments',
        ['T'],
        Conditional(
            _T,
            FunctionExpr(Infer('P'), Infer('R')),
            FunctionExpr(Apply('Reverse', [_P]), Ref('R')),
            _never,
        ),
    ),
    ('If', ['C', 'T', 'F'], Conditional(Ref('C'), _true, _T, Ref('F'))),
    (
        'IsNever',
        ['T'],
        Conditional(TupleExpr([_T]), TupleExpr([_never]), _true, _false),
    ),
    (
        'IsUnion',
        ['T', Parameter('B', _T)],
        Conditional(
            TupleExpr([_T]),
            TupleExpr([_never]),
            _false,
            Conditional(
                _T,
                Ref('B'),
                Conditional(
                    TupleExpr([Ref('B')]), TupleExpr([_T]), _false, _true
                ),
                _never,
            ),
        ),
    ),
    (
        'IsAny',
        ['T'],
        Conditional(
            Lit(Literal('number', 0)),
            IntersectionExpr([Lit(Literal('number', 1)), _T]),
            _true,
            _false,
        ),
    ),
    (
        'Permutation',
        ['T', Parameter('K', _T)],
        Conditional(
            TupleExpr([_T]),
            TupleExpr([_never]),
            _empty,
            Conditional(
                _K,
                _K,
                TupleExpr(
                    [
                        _K,
                        Spread(
                            Apply('Permutation', [Apply('Exclude', [_T, _K])])
                        ),
                    ]
                ),
                _never,
            ),
        ),
    ),
    (
        'UnionToIntersection',
        ['U'],
        Conditional(
            Conditional(
                _U, _any, FunctionExpr(TupleExpr([_U]), Lit(void_type)), _never
            ),
            FunctionExpr(TupleExpr([Infer('I')]), Lit(void_type)),
            Ref('I'),
            _never,
        ),
    ),
    (
        'DeepReadonly',
        ['T'],
        _not_a_function(
            _homomorphic(
                Apply('DeepReadonly', [IndexedAccess(_T, _P)]), Modifier.ADD
            )
        ),
    ),
    (
        'DeepPartial',
        ['T'],
        _not_a_function(
            _homomorphic(
                Apply('DeepPartial', [IndexedAccess(_T, _P)]),
                optional_mod=Modifier.ADD,
            )
        ),
    ),
    (
        'LookUp',
        ['U', 'T'],
        Conditional(_U, ObjectExpr({'type': _T}), _U, _never),
    ),
    (
        'Merge',
        ['F', 'S'],
        MappedType(
            'K',
            UnionExpr([Keyof(Ref('F')), Keyof(Ref('S'))]),
            Conditional(
                _K,
                Keyof(Ref('S')),
                IndexedAccess(Ref('S'), _K),
                Conditional(
                    _K, Keyof(Ref('F')), IndexedAccess(Ref('F'), _K), _never
                ),
            ),
        ),
    ),
    ('RequiredKeys', ['T'], _keys_where_optional(False)),
    ('OptionalKeys', ['T'], _keys_where_optional(True)),
    (
        'TrimLeft',
        ['S'],
        Conditional(
            Ref('S'),
            TemplateLiteral([_whitespace, Infer('R')]),
            Apply('TrimLeft', [Ref('R')]),
            Ref('S'),
        ),
    ),
    (
        'TrimRight',
        ['S'],
        Conditional(
            Ref('S'),
            TemplateLiteral([Infer('L'), _whitespace]),
            Apply('TrimRight', [Ref('L')]),
            Ref('S'),
        ),
    ),
    ('Trim', ['S'], Apply('TrimLeft', [Apply('TrimRight', [Ref('S')])])),
    (
        'CamelCase',
        ['S'],
        Conditional(
            Ref('S'),
            TemplateLiteral([Infer('H'), '_', Infer('R')]),
            TemplateLiteral(
                [
                    Ref('H'),
                    Apply('CamelCase', [Apply('Capitalize', [Ref('R')])]),
                ]
            ),
            Ref('S'),
        ),
    ),
    (
        'PathValue',
        ['T', 'P'],
        Conditional(
            _P,
            TemplateLiteral([Infer('K'), '.', Infer('R')]),
            Conditional(
                _K,
                Keyof(_T),
                Apply('PathValue', [IndexedAccess(_T, _K), Ref('R')]),
                _never,
            ),
            Conditional(_P, Keyof(_T), IndexedAccess(_T, _P), _never),
        ),
    ),
    (
        'Getters',
        ['T'],
        MappedType(
            'K',
            Keyof(_T),
            FunctionExpr(_empty, IndexedAccess(_T, _K)),
            key_remap=TemplateLiteral(['get', Apply('Capitalize', [_K])]),
        ),
    ),
]


def load_preamble(table: Optional[DefinitionTable] = None) -> DefinitionTable:
    """Register the utility definitions, overwriting any of the same names."""
    if table is None:
        table = default_definitions
    for name, parameters, body in _definitions:
        table.define(name, parameters, body)
    return table


def preamble_names() -> list[str]:
    return [name for name, _, _ in _definitions]
