"""
Audit Logger

DESIGN DECISION: Every mutation of the local store is logged.
This provides:
1. Traceability of who-changed-what in a single-user app
2. Visibility of swallowed store failures (the caller only sees a default)
3. A trail of backups, restores and resets

The audit logger:
- Is synchronous, like the rest of the persistence layer
- Never raises (a logging failure must not break a CRUD call)
- Never logs setting values, since the PIN lives there
"""

import logging
import sys

import structlog

from meubolso.config import get_settings
from meubolso.models.audit import AuditEvent, AuditSeverity


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure structlog (and the stdlib logging it writes through).

    The stdlib part only takes effect if the root logger has no handlers
    yet; the structlog part is replaced on every call.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer() if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_app_settings = get_settings().app
configure_logging(_app_settings.log_level, _app_settings.log_json)


class AuditLogger:
    """
    Central audit logging service.

    Emits each AuditEvent as one structured log line. Optionally keeps the
    events in memory (`keep_history=True`), which the tests use to assert
    on what was audited.
    """

    def __init__(self, keep_history: bool = False):
        self._logger = structlog.get_logger("meubolso.audit")
        self._keep_history = keep_history
        self.history: list[AuditEvent] = []

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level matching its severity."""
        if self._keep_history:
            self.history.append(event)

        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Last resort: the log sink itself is broken
            print(f"WARNING: Failed to write audit event: {e}", file=sys.stderr)

    def events_of(self, event_type) -> list[AuditEvent]:
        """Kept events of one type (only populated with keep_history)."""
        return [e for e in self.history if e.event_type == event_type]
