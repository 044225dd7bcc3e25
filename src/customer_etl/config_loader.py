from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml  # type: ignore[import-untyped]

from .dedupe import CLUSTER_SCORE_MODES, DEFAULT_DUPLICATE_THRESHOLD, RUNNING_AVERAGE

DEFAULT_TENANT_ID = "local-dev"


@dataclass
class InputsConfig:
    path: Optional[str] = None


@dataclass
class OutputsConfig:
    path: Optional[str] = None
    report_path: Optional[str] = None
    groups_csv: Optional[str] = None


@dataclass
class CleaningConfig:
    zip_auto_hyphenate: bool = False


@dataclass
class DedupeConfig:
    duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD
    cluster_score: str = RUNNING_AVERAGE


@dataclass
class RulesConfig:
    company_variants: Dict[str, str] = field(default_factory=dict)
    header_mappings: Dict[str, str] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class PipelineConfig:
    inputs: InputsConfig = field(default_factory=InputsConfig)
    outputs: OutputsConfig = field(default_factory=OutputsConfig)
    tenant_id: str = DEFAULT_TENANT_ID
    cleaning: CleaningConfig = field(default_factory=CleaningConfig)
    dedupe: DedupeConfig = field(default_factory=DedupeConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _load_yaml(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _pick(arg_value: Any, config_value: Any, default: Any) -> Any:
    """CLI value wins over YAML, YAML over the built-in default."""
    if arg_value is not None:
        return arg_value
    if config_value is not None:
        return config_value
    return default


def load_pipeline_config(args: argparse.Namespace) -> PipelineConfig:
    config_data = _load_yaml(getattr(args, "config", None))
    inputs_cfg = config_data.get("inputs", {}) or {}
    outputs_cfg = config_data.get("outputs", {}) or {}
    cleaning_cfg = config_data.get("cleaning", {}) or {}
    dedupe_cfg = config_data.get("dedupe", {}) or {}
    rules_cfg = config_data.get("rules", {}) or {}
    logging_cfg = config_data.get("logging", {}) or {}

    inputs = InputsConfig(
        path=_pick(getattr(args, "input_path", None), inputs_cfg.get("path"), None)
    )
    outputs = OutputsConfig(
        path=_pick(getattr(args, "output_path", None), outputs_cfg.get("path"), None),
        report_path=_pick(getattr(args, "report", None), outputs_cfg.get("report_path"), None),
        groups_csv=_pick(getattr(args, "groups_csv", None), outputs_cfg.get("groups_csv"), None),
    )

    cleaning = CleaningConfig(
        zip_auto_hyphenate=bool(
            _pick(
                getattr(args, "zip_auto_hyphenate", None),
                cleaning_cfg.get("zip_auto_hyphenate"),
                False,
            )
        )
    )

    threshold = float(
        _pick(
            getattr(args, "duplicate_threshold", None),
            dedupe_cfg.get("duplicate_threshold"),
            DEFAULT_DUPLICATE_THRESHOLD,
        )
    )
    if not 0.0 < threshold <= 1.0:
        raise ValueError(f"duplicate_threshold must be in (0, 1], got {threshold}")
    cluster_score = str(
        _pick(
            getattr(args, "cluster_score", None),
            dedupe_cfg.get("cluster_score"),
            RUNNING_AVERAGE,
        )
    )
    if cluster_score not in CLUSTER_SCORE_MODES:
        raise ValueError(
            f"cluster_score must be one of {', '.join(CLUSTER_SCORE_MODES)}, got {cluster_score!r}"
        )
    dedupe = DedupeConfig(duplicate_threshold=threshold, cluster_score=cluster_score)

    rules = RulesConfig(
        company_variants=dict(rules_cfg.get("company_variants") or {}),
        header_mappings=dict(rules_cfg.get("header_mappings") or {}),
    )

    arg_level = getattr(args, "log_level", None)
    effective_level = (arg_level or logging_cfg.get("level") or "WARNING").upper()

    return PipelineConfig(
        inputs=inputs,
        outputs=outputs,
        tenant_id=str(
            _pick(getattr(args, "tenant_id", None), config_data.get("tenant_id"), DEFAULT_TENANT_ID)
        ),
        cleaning=cleaning,
        dedupe=dedupe,
        rules=rules,
        logging=LoggingConfig(level=effective_level),
    )
