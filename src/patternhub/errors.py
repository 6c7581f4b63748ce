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
"""Exception taxonomy for PatternHub.

Everything raised deliberately by the engine derives from
``PatternHubError``. Errors that signal caller mistakes (bad criteria,
illegal session transitions, malformed import payloads) also subclass
``ValueError`` so generic validation handlers catch them.
"""

from __future__ import annotations


class PatternHubError(Exception):
    """Base class for all PatternHub errors."""


class NotInitializedError(PatternHubError):
    """Raised when the coordinator is used before ``initialize()`` or after ``dispose()``."""


class NotFoundError(PatternHubError):
    """Raised when a mutation targets an entity id that does not exist."""


class PatternNotFoundError(NotFoundError):
    def __init__(self, pattern_id: str) -> None:
        super().__init__(f"Pattern not found: {pattern_id}")
        self.pattern_id = pattern_id


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidCriteriaError(PatternHubError, ValueError):
    """Raised when search criteria are malformed (unknown category, bad bounds, blank tags)."""


class PersistenceError(PatternHubError):
    """Raised when durable storage cannot be read or written."""


class CollaboratorError(PatternHubError):
    """Raised when the project analyzer or style extractor fails or times out."""


class SessionStateError(PatternHubError, ValueError):
    """Raised on an illegal session mutation (duplicate start, change after completion)."""


class PatternImportError(PatternHubError, ValueError):
    """Raised when an import payload cannot be parsed or fails its checksum."""
