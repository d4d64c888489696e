from typecalc.definitions import DefinitionTable, Parameter
from typecalc.env import Environment
from typecalc.errors import (
    ArityMismatchError,
    EvaluationError,
    InferOutsidePatternError,
    InvalidKeyError,
    MatchAmbiguousError,
    NoSuchFieldError,
    NotSpreadableError,
    RecursionLimitError,
    UnboundReferenceError,
)
from typecalc.evaluator import Evaluator, evaluate, index_value, keys_of
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
    UnionExpr,
)
from typecalc.preamble import load_preamble
from typecalc.subtyping import merge_records
from typecalc.tests.strategies import fixed_tuple_strategy, record_strategy
from typecalc.values import (
    Any,
    Field,
    FunctionType,
    Intersection,
    Literal,
    Never,
    Record,
    Tuple,
    TupleElement,
    TypeValue,
    Union,
    boolean_type,
    literal_union,
    normalize,
    number_type,
    string_type,
    union_of,
)
from hypothesis import given
import hypothesis.strategies as st
from typing import Optional
import unittest
import unittest.mock as mock

preamble = load_preamble(DefinitionTable())


def run(
    expression: Expression,
    definitions: Optional[DefinitionTable] = None,
    **bindings: TypeValue,
) -> TypeValue:
    env = Environment(
        bindings, definitions=preamble if definitions is None else definitions
    )
    return evaluate(expression, env)


def lit(value: str | int | float | bool) -> Lit:
    return Lit(Literal.of(value))


def tuple_of(*values: str | int | float | bool) -> Tuple:
    return Tuple([Literal.of(v) for v in values])


todo = Record({'title': string_type, 'completed': boolean_type})


class TestScenarios(unittest.TestCase):
    def test_pick(self) -> None:
        self.assertEqual(
            Record({'title': string_type}),
            run(Apply('Pick', [Lit(todo), lit('title')])),
        )

    def test_distribution_over_two_members(self) -> None:
        conditional = Conditional(
            Ref('T'), Lit(string_type), lit(True), lit(False)
        )
        self.assertEqual(
            normalize(Union([Literal.of(True), Literal.of(False)])),
            run(conditional, T=literal_union('a', 1)),
        )

    def test_reverse(self) -> None:
        self.assertEqual(
            tuple_of(3, 2, 1), run(Apply('Reverse', [Lit(tuple_of(1, 2, 3))]))
        )

    def test_indexed_access_with_union_key(self) -> None:
        record = Record({'a': number_type, 'b': string_type})
        self.assertEqual(
            union_of(number_type, string_type),
            run(IndexedAccess(Lit(record), Lit(literal_union('a', 'b')))),
        )

    def test_non_decreasing_recursion_trips_the_guard(self) -> None:
        definitions = DefinitionTable()
        definitions.define('Loop', ['T'], Apply('Loop', [Ref('T')]))
        with self.assertRaises(RecursionLimitError) as cm:
            run(Apply('Loop', [Lit(string_type)]), definitions)
        self.assertEqual(1001, cm.exception.depth)
        self.assertIsInstance(cm.exception, RecursionError)

    def test_growing_recursion_trips_the_guard(self) -> None:
        definitions = DefinitionTable()
        definitions.define(
            'Grow', ['T'], Apply('Grow', [TupleExpr([Ref('T')])])
        )
        with self.assertRaises(RecursionLimitError):
            run(Apply('Grow', [Lit(string_type)]), definitions)

    def test_long_bounded_recursion_stays_under_the_guard(self) -> None:
        definitions = DefinitionTable()
        definitions.define(
            'ElementsOf',
            ['T'],
            Conditional(
                Ref('T'),
                TupleExpr([Infer('H')], rest=Infer('R')),
                UnionExpr([Ref('H'), Apply('ElementsOf', [Ref('R')])]),
                Lit(Never),
            ),
        )
        numbers = range(500)
        self.assertEqual(
            literal_union(*numbers),
            run(Apply('ElementsOf', [Lit(tuple_of(*numbers))]), definitions),
        )

    @mock.patch('typecalc.evaluator.apply_intrinsic')
    def test_interpreter_recursion_errors_report_the_depth(
        self, mock_apply_intrinsic
    ) -> None:
        mock_apply_intrinsic.side_effect = RecursionError
        definitions = DefinitionTable()
        definitions.define('Outer', ['T'], Apply('Inner', [Ref('T')]))
        definitions.define('Inner', ['T'], Apply('Uppercase', [Ref('T')]))
        with self.assertRaises(RecursionLimitError) as cm:
            run(Apply('Outer', [lit('a')]), definitions)
        self.assertEqual(2, cm.exception.depth)


class TestLaws(unittest.TestCase):
    @given(record_strategy, st.data())
    def test_pick_and_omit_partition_a_record(
        self, record: Record, data: st.DataObject
    ) -> None:
        keys = data.draw(st.sets(st.sampled_from(sorted(record.fields))))
        k = Lit(normalize(Union(Literal.of(key) for key in keys)))
        picked = run(Apply('Pick', [Lit(record), k]))
        omitted = run(Apply('Omit', [Lit(record), k]))
        assert isinstance(picked, Record) and isinstance(omitted, Record)
        self.assertSetEqual(set(keys), set(picked.fields))
        self.assertEqual(
            normalize(record), merge_records(Intersection([picked, omitted]))
        )

    @given(fixed_tuple_strategy)
    def test_reverse_is_an_involution(self, t: Tuple) -> None:
        self.assertEqual(
            normalize(t),
            run(Apply('Reverse', [Apply('Reverse', [Lit(t)])])),
        )

    @given(record_strategy)
    def test_readonly_is_idempotent(self, record: Record) -> None:
        once = run(Apply('Readonly', [Lit(record)]))
        self.assertEqual(
            once, run(Apply('Readonly', [Apply('Readonly', [Lit(record)])]))
        )
        assert isinstance(once, Record)
        self.assertTrue(all(f.readonly for f in once.fields.values()))


class TestReferencesAndApplication(unittest.TestCase):
    def test_bindings(self) -> None:
        self.assertEqual(string_type, run(Ref('T'), T=string_type))

    def test_unbound_reference(self) -> None:
        with self.assertRaises(UnboundReferenceError) as cm:
            run(TupleExpr([Ref('Missing')]))
        self.assertEqual(Ref('Missing').name, cm.exception.name)
        self.assertIn('while evaluating Missing', str(cm.exception))

    def test_nullary_definition_by_reference(self) -> None:
        definitions = DefinitionTable()
        definitions.define('Str', [], Lit(string_type))
        self.assertEqual(string_type, run(Ref('Str'), definitions))
        self.assertEqual(string_type, run(Apply('Str', []), definitions))

    def test_generic_definition_needs_arguments(self) -> None:
        with self.assertRaises(ArityMismatchError):
            run(Ref('Reverse'))

    def test_wrong_number_of_arguments(self) -> None:
        with self.assertRaises(ArityMismatchError) as cm:
            run(Apply('Pick', [Lit(todo)]))
        self.assertIn('Pick expects 2 type arguments, got 1', str(cm.exception))

    def test_default_parameters_see_earlier_parameters(self) -> None:
        definitions = DefinitionTable()
        definitions.define(
            'Pair',
            ['A', Parameter('B', TupleExpr([Ref('A')]))],
            TupleExpr([Ref('A'), Ref('B')]),
        )
        self.assertEqual(
            Tuple([string_type, Tuple([string_type])]),
            run(Apply('Pair', [Lit(string_type)]), definitions),
        )
        self.assertEqual(
            Tuple([string_type, number_type]),
            run(Apply('Pair', [Lit(string_type), Lit(number_type)]), definitions),
        )

    def test_definition_bodies_do_not_see_caller_bindings(self) -> None:
        definitions = DefinitionTable()
        definitions.define('Leak', [], Ref('T'))
        with self.assertRaises(UnboundReferenceError):
            run(Apply('Leak', []), definitions, T=string_type)

    def test_intrinsics_are_used_when_nothing_is_defined(self) -> None:
        self.assertEqual(
            Literal.of('ABC'),
            run(Apply('Uppercase', [lit('abc')]), DefinitionTable()),
        )

    def test_definitions_shadow_intrinsics(self) -> None:
        definitions = DefinitionTable()
        definitions.define('Uppercase', ['S'], Lit(number_type))
        self.assertEqual(
            number_type, run(Apply('Uppercase', [lit('abc')]), definitions)
        )

    def test_memoization_does_not_change_results(self) -> None:
        expression = Apply('Permutation', [Lit(literal_union('a', 'b', 'c'))])
        env = Environment(definitions=preamble)
        self.assertEqual(
            Evaluator(preamble, memoize=True).evaluate(expression, env),
            Evaluator(preamble, memoize=False).evaluate(expression, env),
        )

    def test_memoized_results_keep_the_key_order(self) -> None:
        record = Record({'a': string_type, 'b': number_type})
        result = run(
            TupleExpr(
                [
                    Apply('Pick', [Lit(record), Lit(literal_union('a', 'b'))]),
                    Apply('Pick', [Lit(record), Lit(literal_union('b', 'a'))]),
                ]
            )
        )
        assert isinstance(result, Tuple)
        field_names = []
        for element in result.elements:
            assert isinstance(element.value, Record)
            field_names.append(list(element.value.fields))
        self.assertListEqual([['a', 'b'], ['b', 'a']], field_names)

    def test_max_depth_is_configurable(self) -> None:

        definitions = DefinitionTable()
        definitions.define(
            'BuildTuple',
            ['N', Parameter('Acc', TupleExpr([]))],
            Conditional(
                IndexedAccess(Ref('Acc'), lit('length')),
                Ref('N'),
                Ref('Acc'),
                Apply(
                    'BuildTuple',
                    [Ref('N'), TupleExpr([Spread(Ref('Acc')), lit(0)])],
                ),
            ),
        )
        evaluator = Evaluator(definitions, max_depth=5)
        self.assertEqual(
            tuple_of(0, 0, 0),
            evaluator.evaluate(Apply('BuildTuple', [lit(3)])),
        )
        with self.assertRaises(RecursionLimitError):
            evaluator.evaluate(Apply('BuildTuple', [lit(10)]))
        # The evaluator is reusable after an error.
        self.assertEqual(
            tuple_of(0), evaluator.evaluate(Apply('BuildTuple', [lit(1)]))
        )


class TestStructures(unittest.TestCase):
    def test_objects(self) -> None:
        self.assertEqual(
            Record({'a': Field(string_type, optional=True, readonly=True)}),
            run(
                ObjectExpr({'a': FieldExpr(Ref('T'), True, True)}),
                T=string_type,
            ),
        )

    def test_tuple_spreads(self) -> None:
        self.assertEqual(
            tuple_of(1, 2, 3),
            run(
                TupleExpr(
                    [Spread(Lit(tuple_of(1, 2))), Spread(Lit(tuple_of(3)))]
                )
            ),
        )

    def test_optional_elements(self) -> None:
        self.assertEqual(
            Tuple([Literal.of(1), TupleElement(string_type, True)]),
            run(TupleExpr([lit(1), OptionalElement(Lit(string_type))])),
        )

    def test_spreading_an_array_at_the_end(self) -> None:
        self.assertEqual(
            Tuple([Literal.of(1)], rest=string_type),
            run(TupleExpr([lit(1)], rest=Lit(Tuple([], rest=string_type)))),
        )

    def test_spreading_an_array_in_the_middle(self) -> None:
        with self.assertRaises(ArityMismatchError):
            run(
                TupleExpr(
                    [Spread(Lit(Tuple([], rest=string_type))), lit(1)]
                )
            )

    def test_spreads_distribute_over_unions(self) -> None:
        self.assertEqual(
            union_of(tuple_of(0, 1), tuple_of(0, 2, 3)),
            run(
                TupleExpr([lit(0), Spread(Ref('T'))]),
                T=union_of(tuple_of(1), tuple_of(2, 3)),
            ),
        )

    def test_spreading_never(self) -> None:
        self.assertIs(Never, run(TupleExpr([lit(0), Spread(Lit(Never))])))

    def test_spreading_a_non_tuple(self) -> None:
        with self.assertRaises(NotSpreadableError):
            run(TupleExpr([Spread(Lit(string_type))]))

    def test_unions_and_intersections_are_normalized(self) -> None:
        self.assertEqual(
            string_type,
            run(UnionExpr([Lit(string_type), lit('a'), Lit(Never)])),
        )
        self.assertIs(
            Never, run(IntersectionExpr([Lit(string_type), Lit(number_type)]))
        )

    def test_functions(self) -> None:
        self.assertEqual(
            FunctionType([string_type], number_type),
            run(FunctionExpr(TupleExpr([Lit(string_type)]), Lit(number_type))),
        )

    def test_infer_outside_a_pattern(self) -> None:
        with self.assertRaises(InferOutsidePatternError):
            run(TupleExpr([Infer('X')]))


class TestIndexing(unittest.TestCase):
    def test_record_fields(self) -> None:
        self.assertEqual(
            string_type, index_value(todo, Literal.of('title'))
        )

    def test_missing_fields(self) -> None:
        with self.assertRaises(NoSuchFieldError) as cm:
            run(IndexedAccess(Lit(todo), lit('due')))
        self.assertIsInstance(cm.exception, LookupError)

    def test_tuple_elements(self) -> None:
        t = tuple_of('a', 'b')
        self.assertEqual(Literal.of('b'), index_value(t, Literal.of(1)))
        self.assertEqual(Literal.of('a'), index_value(t, Literal.of('0')))
        self.assertEqual(Literal.of(2), index_value(t, Literal.of('length')))
        self.assertEqual(
            literal_union('a', 'b'), index_value(t, number_type)
        )
        with self.assertRaises(NoSuchFieldError):
            index_value(t, Literal.of(2))

    def test_array_elements(self) -> None:
        array = Tuple([], rest=string_type)
        self.assertEqual(string_type, index_value(array, Literal.of(5)))
        self.assertEqual(number_type, index_value(array, Literal.of('length')))

    def test_index_distributes_over_targets(self) -> None:
        self.assertEqual(
            union_of(string_type, number_type),
            index_value(
                union_of(
                    Record({'a': string_type}), Record({'a': number_type})
                ),
                Literal.of('a'),
            ),
        )


class TestKeyof(unittest.TestCase):
    def test_record_keys_in_order(self) -> None:
        keys = keys_of(Record({'b': string_type, 'a': number_type}))
        assert isinstance(keys, Union)
        self.assertListEqual(
            [Literal.of('b'), Literal.of('a')], list(keys.members)
        )

    def test_tuple_keys(self) -> None:
        self.assertEqual(literal_union(0, 1), keys_of(tuple_of('x', 'y')))

    def test_union_keys_are_common_keys(self) -> None:
        self.assertEqual(
            Literal.of('a'),
            keys_of(
                union_of(
                    Record({'a': string_type, 'b': string_type}),
                    Record({'a': number_type}),
                )
            ),
        )

    def test_primitives_have_no_keys(self) -> None:
        self.assertIs(Never, keys_of(string_type))


class TestMappedTypes(unittest.TestCase):
    def test_field_order_is_preserved(self) -> None:
        record = Record({'c': string_type, 'a': number_type, 'b': string_type})
        result = run(
            MappedType(
                'K', Keyof(Ref('T')), Lit(boolean_type)
            ),
            T=record,
        )
        assert isinstance(result, Record)
        self.assertListEqual(['c', 'a', 'b'], list(result.fields))

    def test_key_remapping(self) -> None:
        getters = MappedType(
            'K',
            Keyof(Ref('T')),
            FunctionExpr(TupleExpr([]), IndexedAccess(Ref('T'), Ref('K'))),
            key_remap=TemplateLiteral(['get', Apply('Capitalize', [Ref('K')])]),
        )
        self.assertEqual(
            Record(
                {
                    'getTitle': FunctionType([], string_type),
                    'getCompleted': FunctionType([], boolean_type),
                }
            ),
            run(getters, T=todo),
        )

    def test_modifiers(self) -> None:
        record = Record(
            {
                'a': Field(string_type, optional=True),
                'b': Field(string_type, readonly=True),
            }
        )
        result = run(
            MappedType(
                'K',
                Keyof(Ref('T')),
                IndexedAccess(Ref('T'), Ref('K')),
                readonly_mod=Modifier.REMOVE,
                optional_mod=Modifier.REMOVE,
            ),
            T=record,
        )
        self.assertEqual(
            Record({'a': string_type, 'b': string_type}), result
        )

    def test_modifiers_are_kept_by_default(self) -> None:
        record = Record({'a': Field(string_type, optional=True)})
        self.assertEqual(
            record,
            run(
                MappedType(
                    'K', Keyof(Ref('T')), IndexedAccess(Ref('T'), Ref('K'))
                ),
                T=record,
            ),
        )

    def test_mapping_over_a_tuple_makes_a_tuple(self) -> None:
        boxed = MappedType(
            'K', Keyof(Ref('T')), TupleExpr([IndexedAccess(Ref('T'), Ref('K'))])
        )
        self.assertEqual(
            Tuple([tuple_of(1), tuple_of(2)]), run(boxed, T=tuple_of(1, 2))
        )

    def test_mapping_over_a_tuple_keeps_the_rest_type(self) -> None:
        source = Tuple([Literal.of(1)], rest=string_type)
        self.assertEqual(
            Tuple([TupleElement(Literal.of(1), True)], rest=string_type),
            run(Apply('Partial', [Lit(source)])),
        )
        self.assertEqual(source, run(Apply('Readonly', [Lit(source)])))

    def test_mapping_over_a_primitive_is_the_primitive(self) -> None:

        self.assertEqual(
            string_type,
            run(Apply('Partial', [Lit(string_type)])),
        )

    def test_mapping_distributes_over_unions(self) -> None:
        self.assertEqual(
            union_of(
                Record({'a': Field(string_type, optional=True)}),
                Record({'b': Field(number_type, optional=True)}),
            ),
            run(
                Apply(
                    'Partial',
                    [
                        Lit(
                            union_of(
                                Record({'a': string_type}),
                                Record({'b': number_type}),
                            )
                        )
                    ],
                )
            ),
        )

    def test_keys_must_be_property_names(self) -> None:
        with self.assertRaises(InvalidKeyError):
            run(MappedType('K', Lit(string_type), Lit(string_type)))


class TestConditionals(unittest.TestCase):
    def test_inferred_names_are_visible_in_the_true_branch(self) -> None:
        first = Conditional(
            Ref('T'),
            TupleExpr([Infer('F')], rest=Lit(Tuple([], rest=Any))),
            Ref('F'),
            Lit(Never),
        )
        self.assertEqual(Literal.of(1), run(first, T=tuple_of(1, 2)))
        self.assertIs(Never, run(first, T=Tuple([])))

    def test_inferred_names_are_not_visible_in_the_false_branch(self) -> None:
        conditional = Conditional(
            Ref('T'), TupleExpr([Infer('F')]), Lit(Never), Ref('F')
        )
        with self.assertRaises(UnboundReferenceError):
            run(conditional, T=string_type)

    def test_any_takes_both_branches(self) -> None:
        conditional = Conditional(Ref('T'), Lit(string_type), lit(1), lit(2))
        self.assertEqual(literal_union(1, 2), run(conditional, T=Any))

    def test_any_matches_a_pattern_accepting_anything(self) -> None:
        conditional = Conditional(Ref('T'), Lit(Any), lit(1), lit(2))
        self.assertEqual(Literal.of(1), run(conditional, T=Any))

    def test_ambiguous_patterns_are_errors(self) -> None:
        conditional = Conditional(
            Ref('S'),
            TemplateLiteral([Infer('F'), Infer('R')]),
            Ref('F'),
            Lit(Never),
        )
        with self.assertRaises(MatchAmbiguousError) as cm:
            run(conditional, S=Literal.of('abc'))
        self.assertIsInstance(cm.exception, EvaluationError)


class TestTemplates(unittest.TestCase):
    def test_literal_holes_collapse(self) -> None:
        self.assertEqual(
            Literal.of('getName'),
            run(TemplateLiteral(['get', Apply('Capitalize', [lit('name')])])),
        )

    def test_union_holes_distribute(self) -> None:
        self.assertEqual(
            literal_union('a1', 'a2', 'b1', 'b2'),
            run(
                TemplateLiteral([Ref('X'), Ref('Y')]),
                X=literal_union('a', 'b'),
                Y=literal_union(1, 2),
            ),
        )
