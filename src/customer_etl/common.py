from __future__ import annotations

from typing import Any

from .columns import column_index, normalize_column, normalize_headers
from .companies import canonicalize_company, normalize_company_key
from .config_loader import PipelineConfig, load_pipeline_config
from .dedupe import ClusterResult, DuplicateClusterer
from .merge import SimilarityScorer, SimilaritySignals, address_fingerprint
from .models import CustomerRecord, DuplicateGroup, DuplicateReason
from .normalization import (
    CleaningSettings,
    blank_to_none,
    clean_customer_id,
    clean_email,
    clean_flag,
    clean_percentage,
    clean_person_or_company_name,
    clean_phone,
    clean_state,
    clean_text,
    clean_zip,
    is_formatted_phone,
)
from .rules import DEFAULT_RULES, RuleTables, build_rule_tables
from .sources import EmptyInputError, MalformedInputError, read_rows

__all__ = [
    "CleaningSettings",
    "ClusterResult",
    "CustomerRecord",
    "DEFAULT_RULES",
    "DuplicateClusterer",
    "DuplicateGroup",
    "DuplicateReason",
    "EmptyInputError",
    "MalformedInputError",
    "PipelineConfig",
    "RuleTables",
    "SimilarityScorer",
    "SimilaritySignals",
    "address_fingerprint",
    "blank_to_none",
    "build_rule_tables",
    "canonicalize_company",
    "clean_customer_id",
    "clean_email",
    "clean_flag",
    "clean_percentage",
    "clean_person_or_company_name",
    "clean_phone",
    "clean_state",
    "clean_text",
    "clean_zip",
    "column_index",
    "is_formatted_phone",
    "load_pipeline_config",
    "normalize_column",
    "normalize_company_key",
    "normalize_headers",
    "read_rows",
]


def load_config(args: Any) -> PipelineConfig:
    return load_pipeline_config(args)
