from __future__ import annotations
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Iterator


if TYPE_CHECKING:
    from typecalc.evaluator import Evaluator


current_evaluator: ContextVar[Evaluator] = ContextVar('evaluator')


@contextmanager
def change_evaluator(evaluator: Evaluator) -> Iterator[None]:
    token = current_evaluator.set(evaluator)
    try:
        yield
    finally:
        current_evaluator.reset(token)


def is_evaluating() -> bool:
    return current_evaluator.get(None) is not None
