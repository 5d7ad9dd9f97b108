"""
CodeShelf Engine Configuration

All tunable weights and thresholds of the organization engine live here as
frozen dataclasses. Defaults are the calibrated values; a YAML file may
override any of them.

Config resolution order for get_config():
1. Path in the CODESHELF_CONFIG environment variable
2. config/engine_config.yaml next to the packages
3. Built-in defaults

Usage:
    from core.config import get_config, load_config

    config = get_config()
    print(config.similarity.semantic_weight)

    custom = load_config(Path("my_config.yaml"))
"""

import os
import logging
import threading
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Optional, Any

import yaml

from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "engine_config.yaml"


@dataclass(frozen=True)
class SimilaritySettings:
    """Weights and category thresholds for pairwise similarity."""
    semantic_weight: float = 0.35
    structural_weight: float = 0.25
    lexical_weight: float = 0.25
    contextual_weight: float = 0.15
    exact_match_threshold: float = 0.9
    high_similarity_threshold: float = 0.7
    related_threshold: float = 0.4
    search_threshold: float = 0.3
    shingle_size: int = 3


@dataclass(frozen=True)
class ClassifierSettings:
    """Language/topic classification and append-decision knobs."""
    recent_files: int = 10
    language_boost_cap: float = 0.2
    max_suggested_tags: int = 5
    max_context_tags: int = 8
    frequent_user_tags: int = 5
    contextual_tag_limit: int = 3
    similar_file_threshold: float = 0.4
    max_similar_files: int = 10
    append_similarity: float = 0.5
    append_fallback_similarity: float = 0.4
    append_continuation_confidence: float = 0.7
    max_name_length: int = 50


@dataclass(frozen=True)
class SequenceSettings:
    """Sequence pattern detection windows and ratios."""
    linear_window_hours: float = 1.0
    branched_type_count: int = 3
    convergent_ratio: float = 0.6
    complexity_ratio: float = 1.2
    indentation_sample_lines: int = 10


@dataclass(frozen=True)
class MergeSettings:
    """Merge candidate scoring and execution limits."""
    min_confidence: float = 0.3
    max_candidates: int = 5
    evolution_window_hours: float = 24.0
    evolution_similarity: float = 0.6
    feature_similarity: float = 0.4
    batch_group_similarity: float = 0.5
    duplicate_line_ratio: float = 0.3
    preview_length: int = 100


@dataclass(frozen=True)
class GroupingSettings:
    """Corpus grouping strategy weights, base confidences and caps."""
    strategy_weights: Dict[str, float] = field(default_factory=lambda: {
        'semantic': 0.30,
        'temporal': 0.20,
        'project': 0.25,
        'dependency': 0.15,
        'topic': 0.10,
    })
    base_confidence: Dict[str, float] = field(default_factory=lambda: {
        'semantic': 0.8,
        'temporal': 0.6,
        'project': 0.9,
        'dependency': 0.7,
        'topic': 0.6,
    })
    semantic_threshold: float = 0.6
    session_gap_hours: float = 1.0
    overlap_threshold: float = 0.3
    min_confidence: float = 0.3
    max_groups: int = 20
    max_items: int = 500
    max_relationships: int = 5
    max_tags: int = 8


@dataclass(frozen=True)
class OrganizerSettings:
    """Limits for the suggestions returned alongside a classification."""
    max_merge_candidates: int = 3
    max_group_suggestions: int = 2
    max_smart_names: int = 5
    auto_merge_threshold: float = 0.8


@dataclass(frozen=True)
class PlanningSettings:
    """Corpus-wide organization plans and project structure detection."""
    min_plan_confidence: float = 0.4
    similar_pair_threshold: float = 0.7
    auto_merge_pair_threshold: float = 0.8
    max_pair_items: int = 200
    min_period_items: int = 3
    project_group_size: int = 4
    project_group_confidence: float = 0.7
    min_project_confidence: float = 0.6


@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration."""
    similarity: SimilaritySettings = field(default_factory=SimilaritySettings)
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    sequence: SequenceSettings = field(default_factory=SequenceSettings)
    merge: MergeSettings = field(default_factory=MergeSettings)
    grouping: GroupingSettings = field(default_factory=GroupingSettings)
    organizer: OrganizerSettings = field(default_factory=OrganizerSettings)
    planning: PlanningSettings = field(default_factory=PlanningSettings)

    def to_dict(self) -> dict:
        return {
            section.name: {
                f.name: getattr(getattr(self, section.name), f.name)
                for f in fields(getattr(self, section.name))
            }
            for section in fields(self)
        }


# =============================================================================
# Loading
# =============================================================================

def _overlay(section: Any, overrides: Dict[str, Any], section_name: str) -> Any:
    """Return a copy of a settings section with known keys replaced."""
    known = {f.name: f for f in fields(section)}
    changes = {}

    for key, value in overrides.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key {section_name}.{key}")
            continue

        current = getattr(section, key)
        if isinstance(current, dict):
            if not isinstance(value, dict):
                raise ConfigurationError(
                    f"{section_name}.{key} must be a mapping",
                    key=f"{section_name}.{key}"
                )
            unknown = set(value) - set(current)
            if unknown:
                raise ConfigurationError(
                    f"Unknown entries in {section_name}.{key}: {sorted(unknown)}",
                    key=f"{section_name}.{key}"
                )
            changes[key] = {**current, **{k: float(v) for k, v in value.items()}}
        elif isinstance(current, bool) or not isinstance(current, (int, float)):
            changes[key] = value
        else:
            try:
                changes[key] = type(current)(value)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"{section_name}.{key} must be numeric",
                    key=f"{section_name}.{key}", value=value
                ) from e

    return replace(section, **changes)


def validate_config(config: EngineConfig) -> EngineConfig:
    """
    Check weights and thresholds for consistency.

    Raises:
        ConfigurationError: On negative weights, thresholds outside [0, 1],
            similarity weights not summing to 1, or unordered categories.
    """
    sim = config.similarity
    weights = [sim.semantic_weight, sim.structural_weight, sim.lexical_weight, sim.contextual_weight]

    if any(w < 0 for w in weights):
        raise ConfigurationError("Similarity weights must be non-negative", weights=weights)
    if abs(sum(weights) - 1.0) > 1e-6:
        raise ConfigurationError("Similarity weights must sum to 1.0", total=sum(weights))
    if not (sim.exact_match_threshold >= sim.high_similarity_threshold >= sim.related_threshold):
        raise ConfigurationError("Similarity category thresholds must be descending")
    if sim.shingle_size < 1:
        raise ConfigurationError("shingle_size must be at least 1", shingle_size=sim.shingle_size)
    if config.classifier.max_name_length < 1:
        raise ConfigurationError(
            "max_name_length must be at least 1", max_name_length=config.classifier.max_name_length
        )

    grouping = config.grouping
    if any(w < 0 for w in grouping.strategy_weights.values()):
        raise ConfigurationError("Grouping strategy weights must be non-negative")
    if max(grouping.strategy_weights.values()) <= 0:
        raise ConfigurationError("At least one grouping strategy needs a positive weight")

    thresholds = {
        'similarity.search_threshold': sim.search_threshold,
        'classifier.similar_file_threshold': config.classifier.similar_file_threshold,
        'merge.min_confidence': config.merge.min_confidence,
        'grouping.semantic_threshold': grouping.semantic_threshold,
        'grouping.overlap_threshold': grouping.overlap_threshold,
        'grouping.min_confidence': grouping.min_confidence,
        'organizer.auto_merge_threshold': config.organizer.auto_merge_threshold,
        'planning.min_plan_confidence': config.planning.min_plan_confidence,
        'planning.similar_pair_threshold': config.planning.similar_pair_threshold,
        'planning.auto_merge_pair_threshold': config.planning.auto_merge_pair_threshold,
        'planning.project_group_confidence': config.planning.project_group_confidence,
        'planning.min_project_confidence': config.planning.min_project_confidence,
    }
    for name, value in thresholds.items():
        if not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"{name} must be within [0, 1]", key=name, value=value)

    return config


def load_config(config_path: Optional[Path] = None) -> EngineConfig:
    """
    Load engine configuration from a YAML file.

    Args:
        config_path: Path to a YAML file; missing sections keep defaults

    Returns:
        Validated EngineConfig
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}", path=str(config_path))

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}", path=str(config_path)) from e

    if not isinstance(data, dict):
        raise ConfigurationError("Config root must be a mapping", path=str(config_path))

    data = data.get('engine', data)
    config = EngineConfig()
    sections = {}

    for section_field in fields(config):
        overrides = data.get(section_field.name)
        if overrides is None:
            continue
        if not isinstance(overrides, dict):
            raise ConfigurationError(f"Section '{section_field.name}' must be a mapping")
        sections[section_field.name] = _overlay(
            getattr(config, section_field.name), overrides, section_field.name
        )

    logger.debug(f"Loaded engine config from {config_path}")
    return validate_config(replace(config, **sections))


# =============================================================================
# Global Instance
# =============================================================================

_config_instance: Optional[EngineConfig] = None
_config_lock = threading.Lock()


def get_config() -> EngineConfig:
    """Get the process-wide engine configuration."""
    global _config_instance

    with _config_lock:
        if _config_instance is None:
            env_path = os.getenv('CODESHELF_CONFIG')
            if env_path:
                _config_instance = load_config(Path(env_path))
            elif DEFAULT_CONFIG_PATH.exists():
                _config_instance = load_config(DEFAULT_CONFIG_PATH)
            else:
                _config_instance = EngineConfig()

        return _config_instance


def reset_config():
    """Reset the global configuration instance."""
    global _config_instance
    with _config_lock:
        _config_instance = None
