"""The evaluator: computes a type value from an expression.

Evaluation is a recursive dispatch over expression nodes. Conditionals go
through the distributor and the pattern matcher; `Apply` instantiates named
definitions, which is the only way evaluation can recurse without bound, so
that is where the depth guard sits.
"""

from __future__ import annotations

import itertools
import logging
import sys
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence, assert_never

from typecalc.context import change_evaluator
from typecalc.definitions import Definition, DefinitionTable, default_definitions
from typecalc.distributor import Distributor
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
    UnhandledExpressionError,
    format_generic_used_without_arguments_error,
    format_open_tuple_spread_error,
    format_wrong_number_of_arguments_error,
)
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
    ObjectExpr,
    OptionalElement,
    Ref,
    Spread,
    TemplateLiteral,
    TupleExpr,
    UnionExpr,
)
from typecalc.intrinsics import apply_intrinsic, is_intrinsic
from typecalc.logging import TypeCalcLogger
from typecalc.matcher import (
    MatchAmbiguous,
    MatchFailure,
    MatchSuccess,
    PatternMatcher,
)
from typecalc.subtyping import merge_records
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
    normalize,
    number_type,
    string_type,
)

_logger = TypeCalcLogger(logging.getLogger(__name__))

DEFAULT_MAX_DEPTH = 1000
# Generous bound on the interpreter frames one level of definition nesting
# uses, so that the depth guard trips before the interpreter's own limit.
_FRAMES_PER_LEVEL = 50

_recursion_limit_lock = threading.Lock()
_recursion_limit_users = 0
_saved_recursion_limit = 0


@contextmanager
def _raised_recursion_limit(limit: int) -> Iterator[None]:
    global _recursion_limit_users, _saved_recursion_limit
    with _recursion_limit_lock:
        if _recursion_limit_users == 0:
            _saved_recursion_limit = sys.getrecursionlimit()
        _recursion_limit_users += 1
        if limit > sys.getrecursionlimit():
            sys.setrecursionlimit(limit)
    try:
        yield
    finally:
        with _recursion_limit_lock:
            _recursion_limit_users -= 1
            if _recursion_limit_users == 0:
                sys.setrecursionlimit(_saved_recursion_limit)


class Evaluator:
    """Evaluates expressions against a definition table.

    Definitions may nest `max_depth` deep. To let them, `evaluate` raises the
    interpreter's recursion limit while it runs and restores it once no
    evaluation is running. The limit is process-wide, so other threads see the
    raised limit in the meantime."""

    def __init__(
        self,
        definitions: Optional[DefinitionTable] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        memoize: bool = True,
    ) -> None:
        self.definitions = (
            default_definitions if definitions is None else definitions
        )
        self.max_depth = max_depth
        self.memoize = memoize
        self._matcher = PatternMatcher(self)
        self._distributor = Distributor(self._evaluate_conditional_once)
        self._depth = 0
        self._memo: dict[tuple[str, tuple[str, ...]], TypeValue] = {}

    @property
    def depth(self) -> int:
        """How many definition instantiations are currently nested."""
        return self._depth

    def evaluate(
        self, expression: Expression, env: Optional[Environment] = None
    ) -> TypeValue:
        """Evaluate `expression` as an independent top-level computation.

        The depth counter and memo table start out empty and are thrown away
        afterwards. Raises an `EvaluationError` on failure."""
        if env is None:
            env = Environment(definitions=self.definitions)
        saved_state = self._depth, self._memo
        self._depth, self._memo = 0, {}
        try:
            with (
                change_evaluator(self),
                _raised_recursion_limit(self.max_depth * _FRAMES_PER_LEVEL),
            ):
                try:
                    return self.evaluate_subexpression(expression, env)
                except RecursionLimitError:
                    raise
                except RecursionError as e:
                    raise RecursionLimitError(self._depth) from e
        finally:
            self._depth, self._memo = saved_state

    def evaluate_subexpression(
        self, expression: Expression, env: Environment
    ) -> TypeValue:
        """Evaluate part of the computation currently running."""
        try:
            return self._evaluate(expression, env)
        except EvaluationError as e:
            e.set_expression_if_missing(expression)
            raise

    def _evaluate(self, expression: Expression, env: Environment) -> TypeValue:
        if isinstance(expression, Lit):
            return normalize(expression.value)
        if isinstance(expression, Ref):
            return self._evaluate_ref(expression, env)
        if isinstance(expression, ObjectExpr):
            return normalize(
                Record(
                    {
                        name: Field(
                            self.evaluate_subexpression(f.value, env),
                            f.optional,
                            f.readonly,
                        )
                        for name, f in expression.fields.items()
                    }
                )
            )
        if isinstance(expression, TupleExpr):
            return self._evaluate_tuple(expression, env)
        if isinstance(expression, UnionExpr):
            return normalize(
                Union(
                    [
                        self.evaluate_subexpression(m, env)
                        for m in expression.members
                    ]
                )
            )
        if isinstance(expression, IntersectionExpr):
            return normalize(
                Intersection(
                    [
                        self.evaluate_subexpression(m, env)
                        for m in expression.members
                    ]
                )
            )
        if isinstance(expression, Conditional):
            return self._distributor.evaluate(expression, env)
        if isinstance(expression, Infer):
            raise InferOutsidePatternError(expression.name)
        if isinstance(expression, IndexedAccess):
            return index_value(
                self.evaluate_subexpression(expression.target, env),
                self.evaluate_subexpression(expression.key, env),
            )
        if isinstance(expression, Keyof):
            return keys_of(self.evaluate_subexpression(expression.target, env))
        if isinstance(expression, MappedType):
            return self._evaluate_mapped(expression, env)
        if isinstance(expression, TemplateLiteral):
            return normalize(
                TemplateString(
                    [
                        p
                        if isinstance(p, str)
                        else self.evaluate_subexpression(p, env)
                        for p in expression.parts
                    ]
                )
            )
        if isinstance(expression, Apply):
            return self._evaluate_apply(expression, env)
        if isinstance(expression, FunctionExpr):
            params = self.evaluate_subexpression(expression.params, env)
            if not isinstance(params, Tuple):
                raise NotSpreadableError(params)
            return normalize(
                FunctionType(
                    params,
                    self.evaluate_subexpression(expression.returns, env),
                )
            )
        raise UnhandledExpressionError(repr(expression))

    def _evaluate_ref(self, expression: Ref, env: Environment) -> TypeValue:
        resolved = env.resolve(expression.name)
        if isinstance(resolved, Definition):
            if resolved.required_count:
                raise ArityMismatchError(
                    format_generic_used_without_arguments_error(
                        resolved.name, len(resolved.parameters)
                    )
                )
            return self._instantiate(resolved, [], env.definitions)
        return normalize(resolved)

    def _evaluate_apply(self, expression: Apply, env: Environment) -> TypeValue:
        args = [self.evaluate_subexpression(a, env) for a in expression.args]
        if expression.name in env.definitions:
            return self._instantiate(
                env.definitions[expression.name], args, env.definitions
            )
        if is_intrinsic(expression.name):
            return apply_intrinsic(expression.name, args)
        if expression.name in env:
            if args:
                raise ArityMismatchError(
                    format_wrong_number_of_arguments_error(
                        expression.name, 0, 0, len(args)
                    )
                )
            return normalize(env[expression.name])
        raise UnboundReferenceError(expression.name)

    def _instantiate(
        self,
        definition: Definition,
        args: Sequence[TypeValue],
        definitions: DefinitionTable,
    ) -> TypeValue:
        parameters = definition.parameters
        if not definition.required_count <= len(args) <= len(parameters):
            raise ArityMismatchError(
                format_wrong_number_of_arguments_error(
                    definition.name,
                    definition.required_count,
                    len(parameters),
                    len(args),
                )
            )
        # Union and Record equality ignore order, but results depend on it.
        key = (definition.name, tuple(map(repr, args)))
        if self.memoize and key in self._memo:
            return self._memo[key]
        self._depth += 1
        try:
            if self._depth > self.max_depth:
                raise RecursionLimitError(self._depth)
            _logger.debug(
                'applying {} to [{}] at depth {}',
                definition.name,
                ', '.join(map(str, args)),
                self._depth,
            )
            # Bodies see their parameters and nothing else from the caller.
            scope = Environment(definitions=definitions)
            bindings: dict[str, TypeValue] = {}
            for i, parameter in enumerate(parameters):
                if i < len(args):
                    bindings[parameter.name] = args[i]
                else:
                    assert parameter.default is not None
                    bindings[parameter.name] = self.evaluate_subexpression(
                        parameter.default, scope.child(bindings)
                    )
            result = self.evaluate_subexpression(
                definition.body, scope.child(bindings)
            )
        except RecursionLimitError:
            raise
        except RecursionError as e:
            raise RecursionLimitError(self._depth) from e
        finally:
            self._depth -= 1
        if self.memoize:
            self._memo[key] = result
        return result

    def _evaluate_conditional_once(
        self, conditional: Conditional, env: Environment
    ) -> TypeValue:
        check = self.evaluate_subexpression(conditional.check, env)
        if check is Any and not self._accepts_anything(
            conditional.pattern, env
        ):
            # any takes both branches.
            inferred_as_any = {n: Any for n in conditional.pattern.infer_names}
            return normalize(
                Union(
                    [
                        self.evaluate_subexpression(
                            conditional.then_branch, env.child(inferred_as_any)
                        ),
                        self.evaluate_subexpression(
                            conditional.else_branch, env
                        ),
                    ]
                )
            )
        result = self._matcher.match(check, conditional.pattern, env)
        if isinstance(result, MatchSuccess):
            return self.evaluate_subexpression(
                conditional.then_branch, env.child(result.bindings)
            )
        if isinstance(result, MatchFailure):
            return self.evaluate_subexpression(conditional.else_branch, env)
        if isinstance(result, MatchAmbiguous):
            raise MatchAmbiguousError(result.reason)
        assert_never(result)

    def _accepts_anything(self, pattern: Expression, env: Environment) -> bool:
        if isinstance(pattern, Infer):
            return True
        if pattern.contains_infer():
            return False
        return self.evaluate_subexpression(pattern, env) in (Any, Unknown)

    def _evaluate_tuple(
        self, expression: TupleExpr, env: Environment
    ) -> TypeValue:
        # Each item contributes one or more alternative runs of elements; a
        # spread of a union contributes one per member.
        options: list[list[tuple[Sequence[TupleElement], Optional[TypeValue]]]]
        options = []
        for item in expression.items:
            if isinstance(item, Spread):
                value = self.evaluate_subexpression(item.value, env)
                members = (
                    value.members if isinstance(value, Union) else [value]
                )
                runs = []
                for member in members:
                    if member is Never:
                        continue
                    if member is Any:
                        runs.append(((), Any))
                    elif isinstance(member, Tuple):
                        runs.append((member.elements, member.rest))
                    else:
                        raise NotSpreadableError(member)
                options.append(runs)
            elif isinstance(item, OptionalElement):
                value = self.evaluate_subexpression(item.value, env)
                options.append([((TupleElement(value, optional=True),), None)])
            else:
                value = self.evaluate_subexpression(item, env)
                options.append([((TupleElement(value),), None)])
        results = []
        for combination in itertools.product(*options):
            elements: list[TupleElement] = []
            rest: Optional[TypeValue] = None
            for run_elements, run_rest in combination:
                if rest is not None and (run_elements or run_rest is not None):
                    raise ArityMismatchError(
                        format_open_tuple_spread_error(
                            Tuple(elements, rest=rest)
                        )
                    )
                elements.extend(run_elements)
                rest = run_rest
            results.append(Tuple(elements, rest))
        return normalize(Union(results))

    def _evaluate_mapped(
        self, expression: MappedType, env: Environment
    ) -> TypeValue:
        if isinstance(expression.source_keys, Keyof):
            target = expression.source_keys.target
            source = self.evaluate_subexpression(target, env)
            if (
                isinstance(source, Union)
                and isinstance(target, Ref)
                and target.name in env
            ):
                return normalize(
                    Union(
                        [
                            self._map_homomorphic(
                                expression,
                                env.child({target.name: member}),
                                member,
                            )
                            for member in source.members
                        ]
                    )
                )
            return self._map_homomorphic(expression, env, source)
        keys = self.evaluate_subexpression(expression.source_keys, env)
        source = None
        value = expression.value
        if (
            isinstance(value, IndexedAccess)
            and isinstance(value.key, Ref)
            and value.key.name == expression.key_name
            and not value.target.contains_infer()
        ):
            # Pick-like: modifiers come from the record being indexed.
            source = self.evaluate_subexpression(value.target, env)
        return self._build_record(expression, env, keys, source)

    def _map_homomorphic(
        self, expression: MappedType, env: Environment, source: TypeValue
    ) -> TypeValue:
        if source is Never or isinstance(source, (Literal, Primitive)):
            return source
        if isinstance(source, Tuple) and expression.key_remap is None:
            return self._map_tuple(expression, env, source)
        return self._build_record(expression, env, keys_of(source), source)

    def _map_tuple(
        self, expression: MappedType, env: Environment, source: Tuple
    ) -> TypeValue:
        elements = []
        for i, element in enumerate(source.elements):
            value = self.evaluate_subexpression(
                expression.value,
                env.child({expression.key_name: Literal('number', i)}),
            )
            optional = expression.optional_mod.apply(element.optional)
            elements.append(TupleElement(value, optional))
        rest = None
        if source.rest is not None:
            # The first index past the fixed elements reads the rest type.
            past_end = Literal('number', len(source.elements))
            rest = self.evaluate_subexpression(
                expression.value, env.child({expression.key_name: past_end})
            )
        return normalize(Tuple(elements, rest))

    def _build_record(
        self,
        expression: MappedType,
        env: Environment,
        keys: TypeValue,
        source: Optional[TypeValue],
    ) -> TypeValue:
        if isinstance(source, Intersection):
            source = merge_records(source)
        fields: dict[str, Field] = {}
        for key in _members(keys):
            if not _is_property_key(key):
                raise InvalidKeyError(key)
            assert isinstance(key, Literal)
            scope = env.child({expression.key_name: key})
            value = self.evaluate_subexpression(expression.value, scope)
            if expression.key_remap is None:
                names: Sequence[TypeValue] = [key]
            else:
                names = _members(
                    self.evaluate_subexpression(expression.key_remap, scope)
                )
            base = None
            if isinstance(source, Record):
                base = source.fields.get(key.to_template_text())
            for name in names:
                if not _is_property_key(name):
                    raise InvalidKeyError(name)
                assert isinstance(name, Literal)
                fields[name.to_template_text()] = Field(
                    value,
                    optional=expression.optional_mod.apply(
                        base is not None and base.optional
                    ),
                    readonly=expression.readonly_mod.apply(
                        base is not None and base.readonly
                    ),
                )
        return normalize(Record(fields))


def _members(value: TypeValue) -> Sequence[TypeValue]:
    if isinstance(value, Union):
        return list(value.members)
    if value is Never:
        return []
    return [value]


def _is_property_key(value: TypeValue) -> bool:
    return isinstance(value, Literal) and value.kind in ('string', 'number')


def index_value(target: TypeValue, key: TypeValue) -> TypeValue:
    """`target[key]`, distributing over unions of keys and of targets."""
    if target is Any:
        return Any
    if target is Never or key is Never:
        return Never
    if isinstance(key, Union):
        return normalize(Union(index_value(target, k) for k in key.members))
    if isinstance(target, Union):
        return normalize(Union(index_value(t, key) for t in target.members))
    if isinstance(target, Intersection):
        merged = merge_records(target)
        if merged is not None:
            target = merged
    if isinstance(target, Record):
        if _is_property_key(key):
            assert isinstance(key, Literal)
            field = target.fields.get(key.to_template_text())
            if field is not None:
                return field.value
        raise NoSuchFieldError(target, key)
    if isinstance(target, Tuple):
        return _index_tuple(target, key)
    raise NoSuchFieldError(target, key)


def _index_tuple(target: Tuple, key: TypeValue) -> TypeValue:
    if key == Literal('string', 'length'):
        if target.is_fixed_length():
            return Literal('number', len(target.elements))
        return number_type
    if key == number_type:
        rest = [] if target.rest is None else [target.rest]
        return normalize(Union([*target.element_types, *rest]))
    index = None
    if isinstance(key, Literal) and key.kind == 'number':
        if float(key.value).is_integer():
            index = int(key.value)
    elif isinstance(key, Literal) and key.kind == 'string':
        assert isinstance(key.value, str)
        if key.value.isdigit():
            index = int(key.value)
    if index is not None and index >= 0:
        if index < len(target.elements):
            return target.elements[index].value
        if target.rest is not None:
            return target.rest
    raise NoSuchFieldError(target, key)


def _key_list(value: TypeValue) -> list[TypeValue]:
    if isinstance(value, Record):
        return [Literal('string', name) for name in value.fields]
    if isinstance(value, Tuple):
        keys: list[TypeValue] = [
            Literal('number', i) for i in range(len(value.elements))
        ]
        if value.rest is not None:
            keys.append(number_type)
        return keys
    if isinstance(value, Union):
        # Only the keys every member has.
        member_keys = [_key_list(m) for m in value.members]
        return [
            k for k in member_keys[0] if all(k in keys for keys in member_keys)
        ]
    if isinstance(value, Intersection):
        return [k for m in value.members for k in _key_list(m)]
    if value is Any:
        return [string_type, number_type]
    return []


def keys_of(value: TypeValue) -> TypeValue:
    """`keyof value`, in the value's field order."""
    return normalize(Union(_key_list(value)))


def evaluate(
    expression: Expression,
    env: Optional[Environment] = None,
    *,
    definitions: Optional[DefinitionTable] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    memoize: bool = True,
) -> TypeValue:
    """Compute the type value `expression` denotes.

    `definitions` is only consulted when no `env` is given; an environment
    carries its own definition table."""
    if env is None:
        env = Environment(definitions=definitions)
    return Evaluator(env.definitions, max_depth, memoize).evaluate(
        expression, env
    )
