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
"""PatternHub configuration schema.

Every scoring weight and threshold the engine uses is a policy constant
held here rather than a literal in the algorithm code, so deployments can
tune heuristics without touching the implementation.

Config location: ~/.patternhub/config.yaml  (override with PATTERNHUB_HOME)
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("patternhub.config")

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------
PATTERNHUB_HOME = Path(os.environ.get("PATTERNHUB_HOME", Path.home() / ".patternhub"))
DEFAULT_CONFIG_PATH = PATTERNHUB_HOME / "config.yaml"
DATABASE_FILENAME = "patternhub.db"


@dataclass
class SearchConfig:
    """Relevance weights for ``PatternSearchEngine.search``."""

    success_rate_weight: float = 0.30
    usage_weight: float = 0.20
    usage_saturation: int = 100  # usage count at which the usage term maxes out
    name_match_weight: float = 0.30
    description_match_weight: float = 0.20
    code_match_weight: float = 0.10
    recency_weight: float = 0.10
    recency_days: int = 7


@dataclass
class RelatedConfig:
    """Additive weights for ``PatternSearchEngine.get_related``."""

    same_category: float = 0.30
    shared_tag: float = 0.10
    same_language: float = 0.20
    explicit_relation: float = 0.50
    shared_project: float = 0.05
    default_limit: int = 5


@dataclass
class UsageConfig:
    """Exponential smoothing of a pattern's success rate."""

    alpha: float = 0.1


@dataclass
class InsightConfig:
    """Thresholds for ``InsightGenerator``."""

    cache_ttl_seconds: int = 3600
    window_days: int = 30
    high_success_rate: float = 0.9
    low_success_rate: float = 0.7
    min_gate_pass_rate: float = 0.8
    trend_min_days: int = 8
    trend_recent_days: int = 7
    trend_change: float = 0.2
    long_session_seconds: float = 7200.0  # 2 hours
    min_objective_completion: float = 0.8
    max_failure_ratio: float = 0.3
    # Drop the cached report whenever a session reaches a terminal state.
    invalidate_on_session_end: bool = False


@dataclass
class KnowledgeConfig:
    """Snapshot staleness and technical-debt detection."""

    stale_after_days: int = 7
    missing_elements_threshold: int = 5
    low_pattern_success_rate: float = 0.7
    common_errors_threshold: int = 3
    common_errors_top_n: int = 5


@dataclass
class SimilarityConfig:
    same_type_weight: float = 0.30
    shared_patterns_weight: float = 0.30
    shared_dependencies_weight: float = 0.20
    success_rate_weight: float = 0.20
    minimum_similarity: float = 0.3


@dataclass
class TransferConfig:
    """Applicability checks for learning transfer and project recommendations."""

    min_style_confidence: float = 0.8
    min_pattern_success_rate: float = 0.7
    language_agnostic: list[str] = field(default_factory=lambda: ["generic"])
    recommendation_success_margin: float = 0.2
    recommended_pattern_success_rate: float = 0.9
    max_similar_recommendations: int = 3
    max_pattern_recommendations: int = 3


@dataclass
class GlobalAnalysisConfig:
    """Thresholds for the global scan. Counts are exclusive lower bounds (``>``)."""

    pattern_min_usage: int = 10
    pattern_min_success_rate: float = 0.9
    antipattern_min_usage: int = 5
    antipattern_max_success_rate: float = 0.5
    error_min_projects: int = 2
    optimization_min_group_size: int = 2
    optimization_duration_factor: float = 1.5
    optimization_confidence: float = 0.8


@dataclass
class LoggingConfig:
    activity_log: bool = True
    level: str = "INFO"


@dataclass
class IntelligenceConfig:
    """Full PatternHub configuration."""

    # Directory holding patternhub.db and logs/
    data_dir: str = str(PATTERNHUB_HOME)

    # Upper bound for a single analyzer / style-extractor call
    collaborator_timeout_seconds: float = 30.0

    # Worker threads for collaborator calls. A call that times out keeps
    # running on its worker until it returns; Python threads cannot be killed.
    collaborator_workers: int = 4

    search: SearchConfig = field(default_factory=SearchConfig)
    related: RelatedConfig = field(default_factory=RelatedConfig)
    usage: UsageConfig = field(default_factory=UsageConfig)
    insights: InsightConfig = field(default_factory=InsightConfig)
    knowledge: KnowledgeConfig = field(default_factory=KnowledgeConfig)
    similarity: SimilarityConfig = field(default_factory=SimilarityConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    global_analysis: GlobalAnalysisConfig = field(default_factory=GlobalAnalysisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def database_path(self) -> Path:
        return Path(self.data_dir).expanduser() / DATABASE_FILENAME

    @property
    def log_dir(self) -> Path:
        return Path(self.data_dir).expanduser() / "logs"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# Section name -> dataclass, in the order they are written to YAML
_SECTIONS: dict[str, type] = {
    "search": SearchConfig,
    "related": RelatedConfig,
    "usage": UsageConfig,
    "insights": InsightConfig,
    "knowledge": KnowledgeConfig,
    "similarity": SimilarityConfig,
    "transfer": TransferConfig,
    "global_analysis": GlobalAnalysisConfig,
    "logging": LoggingConfig,
}


def load_config(path: Path | str | None = None) -> IntelligenceConfig:
    """Load configuration from a YAML file.

    A missing file yields the defaults. A malformed file is logged and also
    yields the defaults, so a bad edit never prevents the engine from starting.
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.info("No config at %s -- using defaults", config_path)
        return IntelligenceConfig()

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        if raw is None:
            return IntelligenceConfig()
        if not isinstance(raw, dict):
            logger.warning("Invalid config at %s (not a mapping) -- using defaults", config_path)
            return IntelligenceConfig()
        return _parse_config(raw)
    except (OSError, yaml.YAMLError, TypeError, ValueError) as exc:
        logger.error("Failed to load config %s: %s -- using defaults", config_path, exc)
        return IntelligenceConfig()


def save_config(config: IntelligenceConfig, path: Path | str | None = None) -> None:
    """Save configuration to a YAML file."""
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    logger.info("Saved config to %s", config_path)


def _parse_config(raw: dict[str, Any]) -> IntelligenceConfig:
    """Parse a raw YAML dict into an IntelligenceConfig."""
    config = IntelligenceConfig()

    if "data_dir" in raw:
        config.data_dir = str(raw["data_dir"])
    if "collaborator_timeout_seconds" in raw:
        config.collaborator_timeout_seconds = float(raw["collaborator_timeout_seconds"])
    if "collaborator_workers" in raw:
        config.collaborator_workers = max(1, int(raw["collaborator_workers"]))

    for name, section_cls in _SECTIONS.items():
        section_raw = raw.get(name)
        if section_raw is None:
            continue
        if not isinstance(section_raw, dict):
            raise TypeError(f"Config section '{name}' must be a mapping")
        setattr(config, name, _parse_section(name, section_cls, section_raw))

    top_level = {"data_dir", "collaborator_timeout_seconds", "collaborator_workers"}
    unknown = set(raw) - set(_SECTIONS) - top_level
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))

    return config


def _parse_section(name: str, section_cls: type, raw: dict[str, Any]) -> Any:
    defaults = section_cls()
    known = {f.name: f for f in fields(section_cls)}
    values: dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning("Ignoring unknown key '%s' in config section '%s'", key, name)
            continue
        default = getattr(defaults, key)
        # Coerce scalars to the default's type so "0.5" or 1 behave as floats
        if isinstance(default, bool):
            values[key] = bool(value)
        elif isinstance(default, (int, float)):
            values[key] = type(default)(value)
        elif isinstance(default, list):
            values[key] = [str(v) for v in value]
        else:
            values[key] = value
    return section_cls(**values)
