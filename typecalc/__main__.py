"""Evaluate a type-level program written as JSON.

A program is `{"definitions": [...], "bindings": {...}, "expression": ...}`;
see `typecalc.serialize` for the JSON forms."""

import argparse
import json
import logging
import logging.handlers
import sys
from typing import IO, Optional, Sequence

from typecalc.definitions import DefinitionTable
from typecalc.env import Environment
from typecalc.errors import DefinitionError, EvaluationError
from typecalc.evaluator import DEFAULT_MAX_DEPTH, Evaluator
from typecalc.expressions import Expression
from typecalc.logging import JSONFormatter, TypeCalcLogger
from typecalc.preamble import load_preamble
from typecalc.serialize import (
    SerializationError,
    TypeValueEncoder,
    definition_from_json,
    expression_from_json,
    value_from_json,
)

# A child of 'typecalc' even when this module runs as __main__.
_logger = TypeCalcLogger(logging.getLogger('typecalc.cli'))

arg_parser = argparse.ArgumentParser(description='Evaluate a type expression.')
arg_parser.add_argument(
    'file',
    nargs='?',
    type=argparse.FileType('r'),
    default=sys.stdin,
    help='JSON program to evaluate',
)
arg_parser.add_argument(
    '--max-depth',
    type=int,
    default=DEFAULT_MAX_DEPTH,
    help='how deeply definitions may nest before evaluation is abandoned',
)
arg_parser.add_argument(
    '--no-preamble',
    action='store_true',
    default=False,
    help='do not predefine Pick, Omit, Reverse and the other utilities',
)
arg_parser.add_argument(
    '--json',
    action='store_true',
    default=False,
    help='print the result as JSON instead of TypeScript-like text',
)
arg_parser.add_argument(
    '--verbose',
    action='store_true',
    default=False,
    help='print internal logs and errors',
)
arg_parser.add_argument(
    '--log-file',
    default=None,
    help='write structured JSON logs of the evaluation to this file',
)


def configure_logging(verbose: bool, log_file: Optional[str]) -> None:
    logger = logging.getLogger('typecalc')
    if verbose:
        logger.addHandler(logging.StreamHandler(sys.stderr))
    if log_file is not None:
        log_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=1048576, backupCount=1
        )
        log_handler.setFormatter(JSONFormatter())
        logger.addHandler(log_handler)
    if verbose or log_file is not None:
        logger.setLevel(logging.DEBUG)


def load_program(
    program: object, definitions: DefinitionTable
) -> tuple[Environment, Expression]:
    if not isinstance(program, dict):
        raise SerializationError('a program must be a JSON object')
    for data in program.get('definitions', []):
        definition = definition_from_json(data)
        definitions.define(
            definition.name, definition.parameters, definition.body
        )
    bindings = {
        name: value_from_json(value)
        for name, value in program.get('bindings', {}).items()
    }
    if 'expression' not in program:
        raise SerializationError('the program has no expression')
    expression = expression_from_json(program['expression'])
    return Environment(bindings, definitions=definitions), expression


def run(args: argparse.Namespace, output: IO[str]) -> int:
    definitions = DefinitionTable()
    if not args.no_preamble:
        load_preamble(definitions)
    try:
        env, expression = load_program(json.load(args.file), definitions)
    except (json.JSONDecodeError, SerializationError, DefinitionError) as e:
        print('Program Error:', file=output)
        print(e, file=output)
        return 1
    finally:
        args.file.close()
    try:
        result = Evaluator(definitions, max_depth=args.max_depth).evaluate(
            expression, env
        )
    except EvaluationError as e:
        print('Evaluation Error:', file=output)
        print(e, file=output)
        if args.verbose:
            raise
        return 1
    except Exception:
        _logger.error('internal error evaluating {}', expression, exc_info=True)
        print('An internal error has occurred.', file=output)
        print('This is a bug in typecalc.', file=output)
        raise
    if args.json:
        json.dump(result, output, cls=TypeValueEncoder)
        print(file=output)
    else:
        print(result, file=output)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = arg_parser.parse_args(argv)
    configure_logging(args.verbose, args.log_file)
    return run(args, sys.stdout)


if __name__ == '__main__':
    sys.exit(main())
