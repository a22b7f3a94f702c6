"""Diagnostic reporting: log the report and publish it on /diagnostics."""

import logging
from typing import Any, Tuple

from .bus import MessageBus, Topics
from .messages import Diagnostic, DiagnosticLevel

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    DiagnosticLevel.OK: logging.INFO,
    DiagnosticLevel.WARN: logging.WARNING,
    DiagnosticLevel.ERROR: logging.ERROR,
}


def report(
    bus: MessageBus,
    level: DiagnosticLevel,
    component: Tuple[str, ...],
    message: str,
    **values: Any,
) -> Diagnostic:
    diagnostic = Diagnostic(
        component=tuple(str(part) for part in component),
        level=level,
        message=message,
        values=values,
    )
    logger.log(
        _LOG_LEVELS[level],
        "[%s] %s %s",
        "/".join(diagnostic.component),
        message,
        values,
    )
    bus.publish(Topics.DIAGNOSTICS, diagnostic)
    return diagnostic


def ok(bus: MessageBus, component: Tuple[str, ...], message: str, **values: Any) -> Diagnostic:
    return report(bus, DiagnosticLevel.OK, component, message, **values)


def warn(bus: MessageBus, component: Tuple[str, ...], message: str, **values: Any) -> Diagnostic:
    return report(bus, DiagnosticLevel.WARN, component, message, **values)


def error(bus: MessageBus, component: Tuple[str, ...], message: str, **values: Any) -> Diagnostic:
    return report(bus, DiagnosticLevel.ERROR, component, message, **values)
