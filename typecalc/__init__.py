"""A structural type-expression evaluator.

Type values (literals, tuples, records, unions, ...) are computed from type
expressions, including recursive generic definitions, conditional types with
`infer` patterns, mapped types and template literals.
"""

from typecalc.definitions import (
    Definition,
    DefinitionTable,
    Parameter,
    default_definitions,
    define_type,
)
from typecalc.env import Environment
from typecalc.errors import DefinitionError, EvaluationError
from typecalc.evaluator import Evaluator, evaluate
from typecalc.matcher import MatchAmbiguous, MatchFailure, MatchSuccess
from typecalc.preamble import load_preamble
from typecalc.subtyping import is_assignable
from typecalc.values import normalize, structurally_equal

version = '0.1.0'

__all__ = [
    'Definition',
    'DefinitionError',
    'DefinitionTable',
    'Environment',
    'EvaluationError',
    'Evaluator',
    'MatchAmbiguous',
    'MatchFailure',
    'MatchSuccess',
    'Parameter',
    'default_definitions',
    'define_type',
    'evaluate',
    'is_assignable',
    'load_preamble',
    'normalize',
    'structurally_equal',
    'version',
]
