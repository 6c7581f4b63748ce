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
"""Build a pattern draft from an observed code sample.

Tags are suggested from simple content markers and the complexity tier is
estimated from line count. Both are heuristics; callers can always
override them with ``PatternStore.update``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from patternhub.patterns.models import PatternDraft, PatternExample, PatternPerformance

# (tag, predicate over the raw code)
_TAG_RULES = (
    ("async", lambda code: "async" in code or "await" in code),
    (
        "error-handling",
        lambda code: re.search(r"\btry\b", code) is not None
        and re.search(r"\b(catch|except)\b", code) is not None,
    ),
    (
        "testing",
        lambda code: re.search(r"\b(describe|it|test|expect)\s*\(|\bdef test_|\bassert\b", code)
        is not None,
    ),
    ("react-hooks", lambda code: "useState" in code or "useEffect" in code),
    (
        "context-manager",
        lambda code: "__enter__" in code
        or "@contextmanager" in code
        or re.search(r"^\s*(async\s+)?with\s", code, re.MULTILINE) is not None,
    ),
    ("decorator", lambda code: re.search(r"^\s*@[A-Za-z_]", code, re.MULTILINE) is not None),
)

SIMPLE_MAX_LINES = 20
MODERATE_MAX_LINES = 50


def suggest_tags(code: str) -> set[str]:
    return {tag for tag, matches in _TAG_RULES if matches(code)}


def estimate_complexity(code: str) -> str:
    lines = len(code.splitlines()) or 1
    if lines < SIMPLE_MAX_LINES:
        return "simple"
    if lines < MODERATE_MAX_LINES:
        return "moderate"
    return "complex"


def draft_from_code(
    code: str,
    name: str,
    category: str,
    description: str = "",
    language: str = "generic",
    tags: Iterable[str] = (),
) -> PatternDraft:
    """Turn a code sample into a draft, keeping the sample as the first example."""
    return PatternDraft(
        name=name,
        category=category,
        description=description,
        code=code,
        language=language,
        tags=set(tags) | suggest_tags(code),
        examples=[PatternExample(description="Original implementation", code=code)],
        performance=PatternPerformance(complexity=estimate_complexity(code)),
    )
