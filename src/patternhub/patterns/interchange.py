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
PatternHub -- Pattern interchange

Export patterns into a portable JSON document and parse such documents
back into ``CodePattern`` records.

FILE FORMAT:
    {
      "format_version": "1.0",
      "exported_at": "...",
      "category": null | "<category>",
      "pattern_count": N,
      "checksum": "sha256:<hex of canonical patterns JSON>",
      "patterns": [ {...}, ... ]
    }

A bare JSON list of pattern records is also accepted on import.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from patternhub.errors import PatternImportError
from patternhub.patterns.models import CodePattern, validate_category

logger = logging.getLogger("patternhub.patterns.interchange")

FORMAT_VERSION = "1.0"


def compute_checksum(records: list[dict[str, Any]]) -> str:
    canonical = json.dumps(records, sort_keys=True)
    return f"sha256:{hashlib.sha256(canonical.encode()).hexdigest()}"


def export_patterns(
    patterns: Iterable[CodePattern],
    category: str | None = None,
    exported_at: datetime | None = None,
) -> str:
    """Serialise patterns (optionally only one category) to an export document."""
    if category is not None:
        category = validate_category(category)
    records = [p.to_dict() for p in patterns if category is None or p.category == category]
    document = {
        "format_version": FORMAT_VERSION,
        "exported_at": (exported_at or datetime.now(timezone.utc)).isoformat(),
        "category": category,
        "pattern_count": len(records),
        "checksum": compute_checksum(records),
        "patterns": records,
    }
    logger.info("Exported %d pattern(s)%s", len(records), f" in {category}" if category else "")
    return json.dumps(document, indent=2)


def parse_import(text: str) -> list[CodePattern]:
    """Parse an export document (or bare list) into patterns.

    Raises PatternImportError when the text is not valid JSON, the checksum
    does not match, or any record is malformed.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PatternImportError(f"Import payload is not valid JSON: {exc}") from exc

    if isinstance(data, list):
        records = data
    elif isinstance(data, dict) and isinstance(data.get("patterns"), list):
        records = data["patterns"]
        expected = data.get("checksum")
        if expected and compute_checksum(records) != expected:
            raise PatternImportError("Checksum verification failed -- payload may be corrupted")
    else:
        raise PatternImportError("Import payload must be an export document or a list of patterns")

    patterns: list[CodePattern] = []
    for position, record in enumerate(records):
        if not isinstance(record, dict):
            raise PatternImportError(f"Pattern record #{position} is not an object")
        try:
            patterns.append(CodePattern.from_dict(record))
        except (KeyError, TypeError, ValueError) as exc:
            raise PatternImportError(f"Pattern record #{position} is malformed: {exc}") from exc
    return patterns
