"""Structural matching of type values against patterns.

A pattern is an ordinary expression that may contain `Infer` placeholders.
Parts of a pattern without placeholders are evaluated and compared by
assignability; the parts with placeholders are walked structurally alongside
the subject, capturing what lines up with each placeholder.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping, Sequence

from typecalc.expressions import (
    Expression,
    FunctionExpr,
    Infer,
    IntersectionExpr,
    Lit,
    ObjectExpr,
    OptionalElement,
    Spread,
    TemplateLiteral,
    TupleExpr,
    TupleItem,
    UnionExpr,
)
from typecalc.logging import TypeCalcLogger
from typecalc.subtyping import is_assignable, merge_records, value_hole
from typecalc.templates import AmbiguousSplit, Hole, split
from typecalc.values import (
    Any,
    FunctionType,
    Intersection,
    Literal,
    Never,
    Record,
    Tuple,
    TupleElement,
    TypeValue,
    Union,
    Unknown,
    normalize,
    undefined_type,
)

if TYPE_CHECKING:
    from typecalc.env import Environment
    from typecalc.evaluator import Evaluator


_logger = TypeCalcLogger(logging.getLogger(__name__))


class MatchSuccess:
    def __init__(self, bindings: Mapping[str, TypeValue]) -> None:
        self.bindings = dict(bindings)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MatchSuccess):
            return NotImplemented
        return self.bindings == other.bindings

    def __repr__(self) -> str:
        return f'MatchSuccess({self.bindings!r})'


class MatchFailure:
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MatchFailure):
            return NotImplemented
        return True

    def __repr__(self) -> str:
        return 'MatchFailure()'


class MatchAmbiguous:
    def __init__(self, reason: str) -> None:
        self.reason = reason

    def __repr__(self) -> str:
        return f'MatchAmbiguous({self.reason!r})'


type MatchResult = MatchSuccess | MatchFailure | MatchAmbiguous


class _AmbiguousPattern(Exception):
    pass


class _Captures:
    """Candidates for each placeholder, tagged with their variance."""

    def __init__(self) -> None:
        self._candidates: list[tuple[str, TypeValue, bool]] = []

    def add(self, name: str, value: TypeValue, contravariant: bool) -> None:
        self._candidates.append((name, value, contravariant))

    def snapshot(self) -> int:
        return len(self._candidates)

    def restore(self, snapshot: int) -> None:
        del self._candidates[snapshot:]

    def resolve(self) -> dict[str, TypeValue]:
        # Candidates from covariant positions are unioned; those from
        # contravariant positions (parameters) are intersected.
        covariant: dict[str, list[TypeValue]] = {}
        contravariant: dict[str, list[TypeValue]] = {}
        for name, value, is_contravariant in self._candidates:
            side = contravariant if is_contravariant else covariant
            side.setdefault(name, []).append(value)
        bindings = {}
        for name in {**contravariant, **covariant}:
            if name in covariant:
                bindings[name] = normalize(Union(covariant[name]))
            else:
                bindings[name] = normalize(Intersection(contravariant[name]))
        return bindings


class PatternMatcher:
    def __init__(self, evaluator: Evaluator) -> None:
        self._evaluator = evaluator

    def match(
        self, subject: TypeValue, pattern: Expression, env: Environment
    ) -> MatchResult:
        _logger.debug('{} extends? {}', subject, pattern)
        captures = _Captures()
        try:
            matched = self._match(subject, pattern, env, captures, False)
        except (AmbiguousSplit, _AmbiguousPattern) as e:
            _logger.debug('ambiguous match: {}', e)
            return MatchAmbiguous(str(e))
        if not matched:
            return MatchFailure()
        bindings = captures.resolve()
        # Placeholders that lined up with nothing infer as unknown.
        for name in pattern.infer_names:
            bindings.setdefault(name, Unknown)
        _logger.debug('matched with {}', bindings)
        return MatchSuccess(bindings)

    def _match(
        self,
        subject: TypeValue,
        pattern: Expression,
        env: Environment,
        captures: _Captures,
        contravariant: bool,
    ) -> bool:
        if isinstance(pattern, Infer):
            captures.add(pattern.name, subject, contravariant)
            return True
        if not pattern.contains_infer():
            value = self._evaluator.evaluate_subexpression(pattern, env)
            return is_assignable(subject, value)
        if subject is Any or subject is Never:
            for name in pattern.infer_names:
                captures.add(name, subject, contravariant)
            return True
        if isinstance(subject, Union):
            for member in subject.members:
                if not self._match(
                    member, pattern, env, captures, contravariant
                ):
                    return False
            return True
        if isinstance(pattern, UnionExpr):
            # The first alternative that matches wins.
            for alternative in pattern.members:
                snapshot = captures.snapshot()
                if self._match(
                    subject, alternative, env, captures, contravariant
                ):
                    return True
                captures.restore(snapshot)
            return False
        if isinstance(pattern, IntersectionExpr):
            for member in pattern.members:
                if not self._match(
                    subject, member, env, captures, contravariant
                ):
                    return False
            return True
        if isinstance(pattern, TupleExpr):
            return isinstance(subject, Tuple) and self._match_tuple(
                subject, pattern, env, captures, contravariant
            )
        if isinstance(pattern, ObjectExpr):
            return self._match_object(
                subject, pattern, env, captures, contravariant
            )
        if isinstance(pattern, FunctionExpr):
            if not isinstance(subject, FunctionType):
                return False
            return self._match(
                subject.parameters,
                pattern.params,
                env,
                captures,
                not contravariant,
            ) and self._match(
                subject.returns, pattern.returns, env, captures, contravariant
            )
        if isinstance(pattern, TemplateLiteral):
            return self._match_template(
                subject, pattern, env, captures, contravariant
            )
        # Anything else has to be evaluated, which reports the misplaced
        # placeholder.
        value = self._evaluator.evaluate_subexpression(pattern, env)
        return is_assignable(subject, value)

    def _expand_spreads(
        self, items: Sequence[TupleItem], env: Environment
    ) -> list[TupleItem]:
        """Inline spreads of fixed-length tuples that need no capturing."""
        expanded: list[TupleItem] = []
        for item in items:
            if isinstance(item, Spread) and not item.value.contains_infer():
                value = self._evaluator.evaluate_subexpression(item.value, env)
                if isinstance(value, Tuple) and value.rest is None:
                    expanded.extend(
                        OptionalElement(Lit(e.value))
                        if e.optional
                        else Lit(e.value)
                        for e in value.elements
                    )
                    continue
                expanded.append(Spread(Lit(value)))
                continue
            expanded.append(item)
        return expanded

    def _match_elements(
        self,
        elements: Sequence[TupleElement],
        items: Sequence[TupleItem],
        env: Environment,
        captures: _Captures,
        contravariant: bool,
    ) -> bool:
        for element, item in zip(elements, items):
            optional = isinstance(item, OptionalElement)
            expression = item.value if isinstance(item, OptionalElement) else item
            assert isinstance(expression, Expression)
            if element.optional and not optional:
                return False
            if not self._match(
                element.value, expression, env, captures, contravariant
            ):
                return False
        return True

    def _match_tuple(
        self,
        subject: Tuple,
        pattern: TupleExpr,
        env: Environment,
        captures: _Captures,
        contravariant: bool,
    ) -> bool:
        items = self._expand_spreads(pattern.items, env)
        spreads = [i for i, item in enumerate(items) if isinstance(item, Spread)]
        elements = subject.elements
        if not spreads:
            if subject.rest is not None or len(elements) > len(items):
                return False
            if not self._match_elements(
                elements, items, env, captures, contravariant
            ):
                return False
            # Pattern elements past the end of the subject must be optional.
            for item in items[len(elements) :]:
                if not isinstance(item, OptionalElement):
                    return False
                if not self._match(
                    undefined_type, item.value, env, captures, contravariant
                ):
                    return False
            return True
        if len(spreads) > 1:
            raise _AmbiguousPattern(
                f'{pattern} has more than one variadic part'
            )
        [index] = spreads
        prefix, spread, suffix = items[:index], items[index], items[index + 1 :]
        assert isinstance(spread, Spread)
        if subject.rest is not None:
            if suffix or len(elements) < len(prefix):
                return False
            middle = Tuple(elements[len(prefix) :], rest=subject.rest)
        else:
            if len(elements) < len(prefix) + len(suffix):
                return False
            middle = Tuple(elements[len(prefix) : len(elements) - len(suffix)])
        return (
            self._match_elements(
                elements[: len(prefix)], prefix, env, captures, contravariant
            )
            and self._match_elements(
                elements[len(elements) - len(suffix) :],
                suffix,
                env,
                captures,
                contravariant,
            )
            and self._match(middle, spread.value, env, captures, contravariant)
        )

    def _match_object(
        self,
        subject: TypeValue,
        pattern: ObjectExpr,
        env: Environment,
        captures: _Captures,
        contravariant: bool,
    ) -> bool:
        if isinstance(subject, Intersection):
            record = merge_records(subject)
        elif isinstance(subject, Record):
            record = subject
        else:
            record = None
        if record is None:
            return False
        # Fields the pattern doesn't name are ignored.
        for name, field in pattern.fields.items():
            subject_field = record.fields.get(name)
            if subject_field is None:
                if field.optional:
                    continue
                return False
            if subject_field.optional and not field.optional:
                return False
            if not self._match(
                subject_field.value, field.value, env, captures, contravariant
            ):
                return False
        return True

    def _match_template(
        self,
        subject: TypeValue,
        pattern: TemplateLiteral,
        env: Environment,
        captures: _Captures,
        contravariant: bool,
    ) -> bool:
        if not (isinstance(subject, Literal) and subject.kind == 'string'):
            return False
        assert isinstance(subject.value, str)
        segments: list[str | Hole] = []
        capturing_parts: list[Expression | None] = []
        for part in pattern.parts:
            if isinstance(part, str):
                segments.append(part)
            elif part.contains_infer():
                segments.append(Hole(str(part)))
                capturing_parts.append(part)
            else:
                value = self._evaluator.evaluate_subexpression(part, env)
                segments.append(value_hole(value))
                capturing_parts.append(None)
        pieces = split(segments, subject.value)
        if pieces is None:
            return False
        for piece, part in zip(pieces, capturing_parts):
            if part is None:
                continue
            if not self._match(
                Literal('string', piece), part, env, captures, contravariant
            ):
                return False
        return True
