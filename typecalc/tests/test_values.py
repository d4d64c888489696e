from typecalc.tests.strategies import type_value_strategy
from typecalc.values import (
    Any,
    Field,
    FunctionType,
    Intersection,
    Literal,
    Never,
    Record,
    TemplateString,
    Tuple,
    TupleElement,
    TypeValue,
    Union,
    Unknown,
    boolean_type,
    intersection_of,
    literal_union,
    normalize,
    null_type,
    number_type,
    object_type,
    string_type,
    structurally_equal,
    union_of,
)
from hypothesis import given
import unittest


class TestNormalization(unittest.TestCase):
    @given(type_value_strategy)
    def test_normalize_is_idempotent(self, value: TypeValue) -> None:
        once = normalize(value)
        self.assertEqual(once, normalize(once))

    @given(type_value_strategy)
    def test_never_is_absorbed_by_unions(self, value: TypeValue) -> None:
        if normalize(value) is Never:
            return
        self.assertEqual(normalize(value), normalize(Union([Never, value])))

    def test_empty_union_is_never(self) -> None:
        self.assertIs(Never, normalize(Union([])))

    def test_empty_intersection_is_unknown(self) -> None:
        self.assertIs(Unknown, normalize(Intersection([])))

    def test_nested_unions_are_flattened(self) -> None:
        value = normalize(
            Union([Literal.of('a'), Union([Literal.of('b'), Literal.of('a')])])
        )
        self.assertIsInstance(value, Union)
        assert isinstance(value, Union)
        self.assertListEqual(
            [Literal.of('a'), Literal.of('b')], list(value.members)
        )

    def test_single_member_union_is_its_member(self) -> None:
        self.assertEqual(string_type, union_of(string_type, string_type))

    def test_any_absorbs_union(self) -> None:
        self.assertIs(Any, union_of(string_type, Any, Unknown))

    def test_literal_is_absorbed_by_its_primitive(self) -> None:
        self.assertEqual(
            union_of(string_type, number_type),
            union_of(Literal.of('a'), string_type, Literal.of(1), number_type),
        )

    def test_conflicting_literals_intersect_to_never(self) -> None:
        self.assertIs(Never, intersection_of(Literal.of('a'), Literal.of('b')))
        self.assertIs(Never, intersection_of(string_type, number_type))

    def test_literal_intersected_with_its_primitive(self) -> None:
        self.assertEqual(
            Literal.of(1), intersection_of(Literal.of(1), number_type)
        )

    def test_intersection_distributes_over_union(self) -> None:
        self.assertEqual(
            Literal.of('a'),
            intersection_of(literal_union('a', 1), string_type),
        )

    def test_object_is_dropped_next_to_record(self) -> None:
        record = Record({'a': string_type})
        self.assertEqual(record, intersection_of(record, object_type))

    def test_template_without_holes_is_a_literal(self) -> None:
        self.assertEqual(
            Literal.of('onClick'),
            normalize(TemplateString(['on', Literal.of('Click')])),
        )

    def test_template_distributes_over_union_holes(self) -> None:
        self.assertEqual(
            literal_union('get_a', 'get_b'),
            normalize(TemplateString(['get_', literal_union('a', 'b')])),
        )

    def test_template_with_never_hole_is_never(self) -> None:
        self.assertIs(Never, normalize(TemplateString(['x', Never])))

    def test_bare_string_template_is_string(self) -> None:
        self.assertEqual(string_type, normalize(TemplateString([string_type])))

    def test_numbers_render_without_trailing_zero_in_templates(self) -> None:
        self.assertEqual(
            Literal.of('n3'),
            normalize(TemplateString(['n', Literal('number', 3.0)])),
        )


class TestStructuralEquality(unittest.TestCase):
    def test_record_field_order_is_irrelevant(self) -> None:
        self.assertEqual(
            Record({'a': string_type, 'b': number_type}),
            Record({'b': number_type, 'a': string_type}),
        )

    def test_record_modifiers_are_relevant(self) -> None:
        self.assertNotEqual(
            Record({'a': Field(string_type, optional=True)}),
            Record({'a': string_type}),
        )

    def test_union_member_order_is_irrelevant(self) -> None:
        self.assertTrue(
            structurally_equal(
                Union([string_type, number_type]),
                Union([number_type, string_type]),
            )
        )

    def test_equal_values_hash_equally(self) -> None:
        self.assertEqual(
            hash(Tuple([Literal.of(1)], rest=string_type)),
            hash(Tuple([TupleElement(Literal.of(1))], rest=string_type)),
        )

    def test_literal_kinds_are_distinct(self) -> None:
        self.assertNotEqual(Literal.of(True), Literal.of(1))
        self.assertNotEqual(Literal.of('1'), Literal.of(1))

    def test_literal_checks_its_value(self) -> None:
        with self.assertRaises(ValueError):
            Literal('number', True)
        with self.assertRaises(ValueError):
            Literal('symbol', 'x')


class TestStr(unittest.TestCase):
    def test_literals(self) -> None:
        self.assertEqual('"a"', str(Literal.of('a')))
        self.assertEqual('1', str(Literal.of(1)))
        self.assertEqual('true', str(Literal.of(True)))

    def test_tuples(self) -> None:
        self.assertEqual(
            '[1, string?, ...number[]]',
            str(
                Tuple(
                    [Literal.of(1), TupleElement(string_type, True)],
                    rest=number_type,
                )
            ),
        )
        self.assertEqual(
            '(string | null)[]',
            str(Tuple([], rest=union_of(string_type, null_type))),
        )

    def test_records(self) -> None:
        self.assertEqual(
            '{readonly a?: boolean; "b-c": number}',
            str(
                Record(
                    {
                        'a': Field(boolean_type, optional=True, readonly=True),
                        'b-c': number_type,
                    }
                )
            ),
        )

    def test_functions(self) -> None:
        self.assertEqual(
            '(a0: string) => number',
            str(FunctionType([string_type], number_type)),
        )

    def test_templates(self) -> None:
        self.assertEqual(
            '`on${string}`', str(TemplateString(['on', string_type]))
        )
