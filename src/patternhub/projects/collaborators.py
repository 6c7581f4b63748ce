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
External collaborators consumed by the project knowledge cache.

The project analyzer (project-type detection from a file tree) and the
style extractor (code-style rules from source text) live outside the
engine; only their interfaces are defined here, plus null
implementations used when none is configured. Both are treated as
read-only, potentially slow and potentially failing.

Dependency manifests are read directly: package.json, pyproject.toml and
requirements.txt in the project root.
"""

from __future__ import annotations

import json
import logging
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger("patternhub.projects.collaborators")


@dataclass
class ProjectAnalysis:
    """Result of project-type detection."""

    detected_type: str
    confidence: float = 0.0
    matched_patterns: list[str] = field(default_factory=list)
    missing_elements: list[str] = field(default_factory=list)
    language: str | None = None  # primary language, when the analyzer knows it


@dataclass
class StylePreference:
    rule: str
    value: Any
    confidence: float
    id: str = ""
    examples: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.id:
            self.id = self.rule

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "rule": self.rule,
            "value": self.value,
            "confidence": self.confidence,
            "examples": list(self.examples),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StylePreference:
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        return cls(**{k: v for k, v in data.items() if k in valid_fields})


@runtime_checkable
class ProjectAnalyzer(Protocol):
    def analyze(self, project_path: str) -> ProjectAnalysis: ...


@runtime_checkable
class StyleExtractor(Protocol):
    def extract(self, project_path: str) -> list[StylePreference]: ...


class UnknownProjectAnalyzer:
    """Analyzer used when none is configured: every project is of type 'unknown'."""

    def analyze(self, project_path: str) -> ProjectAnalysis:
        return ProjectAnalysis(detected_type="unknown", confidence=0.0)


class NoStyleExtractor:
    def extract(self, project_path: str) -> list[StylePreference]:
        return []


# ---------------------------------------------------------------------------
# Dependency manifests
# ---------------------------------------------------------------------------

_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def _requirement_name(spec: str) -> str | None:
    """``"pydantic[email]>=2.0 ; python_version>'3.8'"`` -> ``"pydantic"``."""
    spec = spec.strip()
    if not spec or spec.startswith(("#", "-")):
        return None
    match = _REQUIREMENT_NAME.match(spec)
    return match.group(1).lower() if match else None


def _from_package_json(path: Path) -> list[str]:
    data = json.loads(path.read_text(encoding="utf-8"))
    names = list((data.get("dependencies") or {}).keys())
    names += list((data.get("devDependencies") or {}).keys())
    return names


def _from_pyproject(path: Path) -> list[str]:
    data = tomllib.loads(path.read_text(encoding="utf-8"))
    project = data.get("project", {})
    specs = list(project.get("dependencies", []))
    for extra in project.get("optional-dependencies", {}).values():
        specs += list(extra)
    names = [n for n in (_requirement_name(s) for s in specs) if n]
    poetry = data.get("tool", {}).get("poetry", {}).get("dependencies", {})
    names += [n.lower() for n in poetry if n.lower() != "python"]
    return names


def _from_requirements(path: Path) -> list[str]:
    names = []
    for line in path.read_text(encoding="utf-8").splitlines():
        name = _requirement_name(line.split("#", 1)[0])
        if name:
            names.append(name)
    return names


MANIFEST_READERS = (
    ("package.json", _from_package_json),
    ("pyproject.toml", _from_pyproject),
    ("requirements.txt", _from_requirements),
)


def read_dependencies(project_path: str | Path) -> list[str]:
    """Declared dependency names across every manifest found in the project root.

    An unreadable manifest is logged and skipped; a project with no
    manifest simply has no dependencies.
    """
    root = Path(project_path)
    names: list[str] = []
    for filename, reader in MANIFEST_READERS:
        manifest = root / filename
        if not manifest.is_file():
            continue
        try:
            names += reader(manifest)
        except (OSError, ValueError, tomllib.TOMLDecodeError, AttributeError) as exc:
            logger.warning("Could not read %s: %s", manifest, exc)
    return list(dict.fromkeys(names))
