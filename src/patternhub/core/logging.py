# PatternHub
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of PatternHub.
#
# PatternHub is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""
PatternHub -- Activity Log

Every significant engine event (pattern registered, usage recorded,
session completed, project analyzed, insights regenerated) is written to a
rotating log file that users can tail to see what the engine is doing.

LOG LOCATION:
    <data_dir>/logs/patternhub.log          (current)
    <data_dir>/logs/patternhub.log.1        (previous rotation)

RULES:
    - Single log file, max 10 MB before rotation, bounded backups
    - Human-readable format with structured key=value fields
    - WARNING and above mirrored to stderr

USAGE:
    log = ActivityLog(config.log_dir)
    log.pattern("registered", "lru-cache", category="performance")
    log.session("completed", "sess-42", duration=900.0)
    log.error("Storage", "Write failed", error=str(exc))
    log.close()
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

# =============================================================================
# CONSTANTS
# =============================================================================

MAX_LOG_FILE_BYTES = 10 * 1024 * 1024  # 10 MB per file
LOG_BACKUP_COUNT = 5
LOG_FILENAME = "patternhub.log"


# =============================================================================
# FORMATTER -- human-readable + structured
# =============================================================================


class ActivityLogFormatter(logging.Formatter):
    """
    Format: TIMESTAMP | LEVEL | COMPONENT | MESSAGE | {structured fields}

    Example:
    2026-02-09T17:30:45.123Z | PATT  | Patterns     | Pattern registered | pattern_id="lru-cache"
    2026-02-09T17:30:46.500Z | SESS  | Sessions     | Session completed | session_id="s-1" duration=900.000
    """

    LEVEL_WIDTH = 5
    COMPONENT_WIDTH = 12

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        ts = created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created.microsecond // 1000:03d}Z"

        level = getattr(record, "activity_level", record.levelname)
        component = getattr(record, "component", "System")
        message = record.getMessage()

        fields = getattr(record, "fields", {})
        field_str = ""
        if fields:
            parts = []
            for k, v in fields.items():
                if isinstance(v, str):
                    parts.append(f'{k}="{v}"')
                elif isinstance(v, float):
                    parts.append(f"{k}={v:.3f}")
                else:
                    parts.append(f"{k}={v}")
            field_str = " | " + " ".join(parts)

        return (
            f"{ts} | {level:<{self.LEVEL_WIDTH}} | "
            f"{component:<{self.COMPONENT_WIDTH}} | {message}{field_str}"
        )


# =============================================================================
# ACTIVITY LOG
# =============================================================================


class ActivityLog:
    """
    Component-tagged activity log for one engine instance.

    Each instance owns its own ``logging.Logger`` (no process-wide
    singleton), so two coordinators pointed at different data directories
    never write into each other's files.
    """

    def __init__(self, log_dir: Path | str, level: str = "INFO"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / LOG_FILENAME
        self._run_id = uuid.uuid4().hex[:8]

        self._logger = logging.getLogger(f"patternhub.activity.{self._run_id}")
        self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        self._logger.propagate = False
        self._logger.handlers.clear()

        file_handler = logging.handlers.RotatingFileHandler(
            str(self.log_file),
            maxBytes=MAX_LOG_FILE_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(ActivityLogFormatter())
        self._logger.addHandler(file_handler)

        # Also log to stderr at WARNING+ for immediate visibility
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.WARNING)
        stderr_handler.setFormatter(ActivityLogFormatter())
        self._logger.addHandler(stderr_handler)

        self.info("System", "Activity log opened", log_file=str(self.log_file))

    def _log(self, level: int, activity_level: str, component: str, message: str, **fields):
        """Core log method."""
        fields["run"] = self._run_id
        record = self._logger.makeRecord(
            name=self._logger.name,
            level=level,
            fn="",
            lno=0,
            msg=message,
            args=(),
            exc_info=None,
        )
        record.component = component
        record.activity_level = activity_level
        record.fields = fields
        if self._logger.isEnabledFor(level):
            self._logger.handle(record)

    def close(self) -> None:
        """Flush and detach all handlers."""
        for handler in list(self._logger.handlers):
            handler.flush()
            handler.close()
            self._logger.removeHandler(handler)

    # =========================================================================
    # PUBLIC API -- Standard levels
    # =========================================================================

    def info(self, component: str, message: str, **fields):
        self._log(logging.INFO, "INFO", component, message, **fields)

    def warn(self, component: str, message: str, **fields):
        self._log(logging.WARNING, "WARN", component, message, **fields)

    def error(self, component: str, message: str, **fields):
        self._log(logging.ERROR, "ERROR", component, message, **fields)

    def debug(self, component: str, message: str, **fields):
        self._log(logging.DEBUG, "DEBUG", component, message, **fields)

    # =========================================================================
    # PUBLIC API -- Domain-specific log methods
    # =========================================================================

    def pattern(self, action: str, pattern_id: str, **fields):
        """Log a pattern lifecycle event (registered, updated, used, imported)."""
        fields.update(pattern_id=pattern_id)
        self._log(logging.INFO, "PATT", "Patterns", f"Pattern {action}", **fields)

    def session(self, action: str, session_id: str, **fields):
        """Log a session lifecycle event."""
        fields.update(session_id=session_id)
        self._log(logging.INFO, "SESS", "Sessions", f"Session {action}", **fields)

    def knowledge(self, action: str, project_id: str, success: bool = True, **fields):
        """Log a project knowledge event (analyzed, fallback, transfer)."""
        fields.update(project_id=project_id, success=success)
        level = logging.INFO if success else logging.WARNING
        self._log(level, "PROJ", "Projects", f"Project {action}", **fields)

    def insight(self, action: str, count: int = 0, **fields):
        """Log insight generation or invalidation."""
        fields.update(count=count)
        self._log(logging.INFO, "INSGT", "Insights", f"Insights {action}", **fields)
