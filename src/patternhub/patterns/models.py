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
"""Code pattern data model.

A ``CodePattern`` is a named, reusable code fragment with tracked usage and
success statistics. Patterns hold other patterns and projects by id only.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from patternhub.core.timestamps import parse_optional_timestamp


class PatternCategory(str, Enum):
    """Fixed set of pattern categories."""

    ARCHITECTURE = "architecture"
    COMPONENT = "component"
    API = "api"
    TESTING = "testing"
    PERFORMANCE = "performance"
    SECURITY = "security"
    WORKFLOW = "workflow"


CATEGORIES: tuple[str, ...] = tuple(c.value for c in PatternCategory)

COMPLEXITY_TIERS = ("simple", "moderate", "complex")


def validate_category(category: str) -> str:
    value = category.value if isinstance(category, PatternCategory) else str(category)
    if value not in CATEGORIES:
        raise ValueError(f"Unknown pattern category: {category!r} (expected one of {CATEGORIES})")
    return value


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class PatternUsage:
    count: int = 0
    last_used: datetime | None = None
    projects: set[str] = field(default_factory=set)
    success_rate: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "last_used": _ts(self.last_used),
            "projects": sorted(self.projects),
            "success_rate": self.success_rate,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatternUsage:
        return cls(
            count=int(data.get("count", 0)),
            last_used=parse_optional_timestamp(data.get("last_used")),
            projects=set(data.get("projects", [])),
            success_rate=min(1.0, max(0.0, float(data.get("success_rate", 1.0)))),
        )


@dataclass
class PatternMetadata:
    created: datetime
    updated: datetime
    version: int = 1
    dependencies: list[str] = field(default_factory=list)
    related_patterns: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": _ts(self.created),
            "updated": _ts(self.updated),
            "version": self.version,
            "dependencies": list(self.dependencies),
            "related_patterns": list(self.related_patterns),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatternMetadata:
        return cls(
            created=parse_optional_timestamp(data["created"]),
            updated=parse_optional_timestamp(data.get("updated") or data["created"]),
            version=max(1, int(data.get("version", 1))),
            dependencies=list(data.get("dependencies") or []),
            related_patterns=list(data.get("related_patterns") or []),
        )


@dataclass
class PatternExample:
    description: str
    code: str
    context: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {"description": self.description, "code": self.code}
        if self.context is not None:
            data["context"] = self.context
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatternExample:
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        return cls(**{k: v for k, v in data.items() if k in valid_fields})


@dataclass
class PatternPerformance:
    complexity: str = "simple"  # 'simple', 'moderate', 'complex'
    avg_execution_time: float | None = None  # milliseconds
    memory_usage: float | None = None  # bytes

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatternPerformance:
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        return cls(**{k: v for k, v in data.items() if k in valid_fields})


@dataclass
class CodePattern:
    id: str
    name: str
    category: str
    description: str
    code: str
    language: str
    metadata: PatternMetadata
    tags: set[str] = field(default_factory=set)
    usage: PatternUsage = field(default_factory=PatternUsage)
    examples: list[PatternExample] = field(default_factory=list)
    performance: PatternPerformance | None = None

    def copy(self) -> CodePattern:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "code": self.code,
            "language": self.language,
            "tags": sorted(self.tags),
            "usage": self.usage.to_dict(),
            "metadata": self.metadata.to_dict(),
            "examples": [e.to_dict() for e in self.examples],
        }
        if self.performance is not None:
            data["performance"] = self.performance.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CodePattern:
        """Rebuild a pattern from its ``to_dict`` form. Raises KeyError/ValueError when malformed."""
        performance = data.get("performance")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            category=validate_category(data["category"]),
            description=data.get("description", ""),
            code=data.get("code", ""),
            language=data.get("language", "generic"),
            tags=set(data.get("tags", [])),
            usage=PatternUsage.from_dict(data.get("usage", {})),
            metadata=PatternMetadata.from_dict(data["metadata"]),
            examples=[PatternExample.from_dict(e) for e in data.get("examples", [])],
            performance=PatternPerformance.from_dict(performance) if performance else None,
        )


@dataclass
class PatternDraft:
    """A pattern as supplied by a caller, before id and metadata are assigned."""

    name: str
    category: str
    code: str
    language: str
    description: str = ""
    tags: set[str] = field(default_factory=set)
    examples: list[PatternExample] = field(default_factory=list)
    performance: PatternPerformance | None = None
    dependencies: list[str] = field(default_factory=list)
    related_patterns: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Pattern name must not be empty")
        self.category = validate_category(self.category)
        self.tags = set(self.tags)
