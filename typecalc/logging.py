"""Logging helpers.

The engine logs through `TypeCalcLogger`, which takes `str.format` templates
and formats them only when a handler emits the record. Every record carries
the frame that logged it and the definition depth of the evaluation in
progress, which `JSONFormatter` writes out as one JSON object per line.
"""

from datetime import datetime, timezone
import inspect
import json
import logging
import pathlib
import traceback
from typing import Dict, Optional, Tuple

from typecalc.context import current_evaluator


class TypeCalcLogger:
    """Wraps a logging.Logger so that it's easy to use str.format syntax."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def debug(
        self, format_string: str, *args: object, **kwargs: object
    ) -> None:
        self._emit(logging.DEBUG, format_string, args, kwargs)

    def error(
        self, format_string: str, *args: object, **kwargs: object
    ) -> None:
        self._emit(logging.ERROR, format_string, args, kwargs)

    def _emit(
        self,
        level: int,
        format_string: str,
        args: Tuple[object, ...],
        kwargs: Dict[str, object],
    ) -> None:
        # No stack walk when the level is disabled.
        if not self._logger.isEnabledFor(level):
            return
        exc_info = kwargs.pop('exc_info', None)
        # Two frames up: past _emit and the public method.
        caller = inspect.stack()[2]
        evaluator = current_evaluator.get(None)
        self._logger.log(
            level,
            _LazyMessage(format_string, args, kwargs),
            exc_info=exc_info,  # type: ignore[arg-type]
            extra={
                'caller': caller,
                'depth': None if evaluator is None else evaluator.depth,
            },
        )


class _LazyMessage:
    def __init__(
        self,
        format_string: str,
        args: Tuple[object, ...],
        kwargs: Dict[str, object],
    ) -> None:
        self._format_string = format_string
        self._args = args
        self._kwargs = kwargs

    def __str__(self) -> str:
        return self._format_string.format(*self._args, **self._kwargs)


def _source(record: logging.LogRecord) -> Dict[str, object]:
    # Records that didn't come through TypeCalcLogger have no caller.
    caller: Optional[inspect.FrameInfo] = getattr(record, 'caller', None)
    if caller is None:
        return {
            'path_name': record.pathname,
            'file_name': record.filename,
            'module': record.module,
            'line_number': record.lineno,
            'function_name': record.funcName,
        }
    return {
        'path_name': caller.filename,
        'file_name': pathlib.Path(caller.filename).name,
        'module': caller.frame.f_globals['__name__'],
        'line_number': caller.lineno,
        'function_name': caller.function,
    }


class _LogRecordEncoder(json.JSONEncoder):
    """A JSON Encoder that supports logging.LogRecord objects."""

    def default(self, obj: object):
        if not isinstance(obj, logging.LogRecord):
            return super().default(obj)
        return {
            'name': obj.name,
            'message': obj.getMessage(),
            'level_name': obj.levelname,
            **_source(obj),
            'depth': getattr(obj, 'depth', None),
            'exception': (
                traceback.format_exception(*obj.exc_info)
                if obj.exc_info
                else None
            ),
            'created': datetime.fromtimestamp(
                obj.created, timezone.utc
            ).isoformat(),
            'thread_name': obj.threadName,
        }


class JSONFormatter(logging.Formatter):
    """A logging formatter for producing structured JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(record, cls=_LogRecordEncoder)
