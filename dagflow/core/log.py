"""Logger capability used by the engine.

The engine never talks to a logging backend directly. It calls an injected
object exposing ``info``, ``warn`` and ``error``, each taking a message and
an optional ``meta`` dict. ``StdlibLogger`` is the default and forwards to
the standard ``logging`` module.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol, runtime_checkable


@runtime_checkable
class Logger(Protocol):
    def info(self, message: str, meta: Mapping[str, Any] | None = None) -> None: ...

    def warn(self, message: str, meta: Mapping[str, Any] | None = None) -> None: ...

    def error(self, message: str, meta: Mapping[str, Any] | None = None) -> None: ...


def _format(message: str, meta: Mapping[str, Any] | None) -> str:
    if not meta:
        return message
    pairs = " ".join(f"{key}={meta[key]!r}" for key in sorted(meta))
    return f"{message} [{pairs}]"


class StdlibLogger:
    """Adapts the logger capability onto ``logging.Logger``."""

    def __init__(self, logger: logging.Logger | str = "dagflow"):
        self._logger = logging.getLogger(logger) if isinstance(logger, str) else logger

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def info(self, message: str, meta: Mapping[str, Any] | None = None) -> None:
        self._logger.info(_format(message, meta), extra={"meta": dict(meta or {})})

    def warn(self, message: str, meta: Mapping[str, Any] | None = None) -> None:
        self._logger.warning(_format(message, meta), extra={"meta": dict(meta or {})})

    def error(self, message: str, meta: Mapping[str, Any] | None = None) -> None:
        self._logger.error(_format(message, meta), extra={"meta": dict(meta or {})})
