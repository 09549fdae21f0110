"""Structured Logging — JSON formatter, setup, and the admission observer.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (membership_id, segment_id, fail_type, task_name ...) surfaced when present
    - JSON format in production, human-readable in development
    - The observer only logs: it never raises into the caller

Design Decisions:
    - JSONFormatter over third-party libs: zero dependencies, full control
    - setup_logging called once on startup via lifespan
    - LoggingAdmissionObserver is the production AdmissionObserver (core/repository_protocols.py);
      tests inject a recording observer instead of capturing log output
"""

import logging
import json
from datetime import datetime, timezone

from crewgate.core.domain_types import (
    ActivityId, FailType, MembershipId, ParticipantId, SegmentId,
)

_EXTRA_KEYS = (
    "membership_id", "segment_id", "activity_id", "participant_id",
    "error_code", "fail_type", "attempt", "task_name",
    "input_tokens", "output_tokens", "path",
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = str(val) if not isinstance(val, (int, float, bool)) else val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Configure logging for the application."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))


class LoggingAdmissionObserver:
    """AdmissionObserver that writes one structured log line per event."""

    def __init__(self, logger: logging.Logger | None = None):
        self._log = logger or logging.getLogger("crewgate.admission")

    def precheck_failed(
        self, participant_id: ParticipantId, activity_id: ActivityId,
        fail_type: FailType, reason: str,
    ) -> None:
        self._log.info(
            f"Pre-check failed: {reason}",
            extra={
                "participant_id": participant_id,
                "activity_id": activity_id,
                "fail_type": fail_type.value,
            },
        )

    def membership_created(
        self, membership_id: MembershipId, participant_id: ParticipantId,
        segment_id: SegmentId,
    ) -> None:
        self._log.info(
            "Membership created",
            extra={
                "membership_id": membership_id,
                "participant_id": participant_id,
                "segment_id": segment_id,
            },
        )

    def membership_reactivated(
        self, membership_id: MembershipId, participant_id: ParticipantId,
        segment_id: SegmentId, answers_deleted: int,
    ) -> None:
        self._log.info(
            f"Membership reactivated ({answers_deleted} prior answers removed)",
            extra={
                "membership_id": membership_id,
                "participant_id": participant_id,
                "segment_id": segment_id,
            },
        )

    def answers_persisted(self, membership_id: MembershipId, count: int) -> None:
        self._log.info(
            f"Persisted {count} answers", extra={"membership_id": membership_id},
        )

    def assessment_scheduled(self, membership_id: MembershipId) -> None:
        self._log.info(
            "Assessment scheduled", extra={"membership_id": membership_id},
        )

    def assessment_skipped(self, membership_id: MembershipId, reason: str) -> None:
        self._log.info(
            f"Assessment skipped: {reason}", extra={"membership_id": membership_id},
        )

    def assessment_failed(
        self, membership_id: MembershipId, error: BaseException,
    ) -> None:
        self._log.error(
            f"Assessment failed: {error!r}",
            extra={
                "membership_id": membership_id,
                "error_code": getattr(error, "code", type(error).__name__),
            },
        )

    def owner_notification_failed(self, membership_id: MembershipId, error: str) -> None:
        self._log.warning(
            f"Owner notification failed: {error}",
            extra={"membership_id": membership_id},
        )
