from __future__ import annotations

import argparse
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import yaml  # type: ignore[import-untyped]

from .columns import column_index
from .common import load_config
from .companies import canonicalize_company, normalize_company_key
from .config_loader import DEFAULT_TENANT_ID, PipelineConfig
from .dedupe import CLUSTER_SCORE_MODES, DuplicateClusterer
from .logging_utils import configure_logging
from .merge import address_fingerprint
from .models import CustomerRecord, DuplicateGroup
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
from .report import (
    render_duplicate_report,
    write_clean_csv,
    write_duplicate_report,
    write_groups_csv,
)
from .rules import (
    COLOR_GRADE_COLUMNS,
    DEFAULT_RULES,
    WALL_LOSS_COLUMNS,
    WSTRING_COLOR_COLUMNS,
    WSTRING_LOSS_COLUMNS,
    RuleTables,
    build_rule_tables,
)
from .sources import EmptyInputError, MalformedInputError, read_rows

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    READING_HEADERS = "reading_headers"
    CLEANING = "cleaning"
    CLUSTERING = "clustering"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RunStats:
    rows_read: int = 0
    rows_cleaned: int = 0
    rows_dropped: int = 0
    rows_blank: int = 0
    rows_reshaped: int = 0
    field_warnings: Counter = field(default_factory=Counter)
    duplicate_groups: int = 0
    duplicates_dropped: int = 0
    started_at: datetime = field(default_factory=datetime.now)
    elapsed_seconds: float = 0.0

    @property
    def clean_records(self) -> int:
        return self.rows_cleaned - self.duplicates_dropped

    @property
    def has_warnings(self) -> bool:
        return bool(self.rows_dropped or self.rows_reshaped or sum(self.field_warnings.values()))

    def summary(self) -> str:
        warnings = ", ".join(
            f"{name}={count}" for name, count in sorted(self.field_warnings.items())
        )
        return "\n".join(
            [
                "Customer Cleaning Summary",
                "=========================",
                f"Start Time: {self.started_at.isoformat(timespec='seconds')}",
                f"Duration: {self.elapsed_seconds:.2f}s",
                f"Rows Read: {self.rows_read}",
                f"Rows Cleaned: {self.rows_cleaned}",
                f"Rows Dropped (no customer name): {self.rows_dropped}",
                f"Rows Blank (skipped): {self.rows_blank}",
                f"Rows Reshaped: {self.rows_reshaped}",
                f"Field Warnings: {warnings or 'none'}",
                f"Duplicate Groups: {self.duplicate_groups}",
                f"Duplicates Dropped: {self.duplicates_dropped}",
                f"Clean Records: {self.clean_records}",
                f"Status: {'COMPLETED WITH WARNINGS' if self.has_warnings else 'SUCCESS'}",
            ]
        )


@dataclass
class PipelineResult:
    records: List[CustomerRecord]
    duplicate_groups: List[DuplicateGroup]
    stats: RunStats


class CustomerCleaningPipeline:
    """
    Batch transform from raw export rows to clean, deduplicated customers.

    ``run`` walks idle -> reading_headers -> cleaning -> clustering -> done.
    Only a source that cannot be read into rows ends in ``failed``; every
    per-row problem is repaired or counted and the run carries on.
    """

    def __init__(
        self,
        rules: RuleTables = DEFAULT_RULES,
        settings: Optional[CleaningSettings] = None,
        clusterer: Optional[DuplicateClusterer] = None,
        tenant_id: str = DEFAULT_TENANT_ID,
    ):
        self.rules = rules
        self.settings = settings or CleaningSettings()
        self.clusterer = clusterer or DuplicateClusterer()
        self.tenant_id = tenant_id
        self.state = PipelineState.IDLE
        self.stats = RunStats()

    def run_file(self, path: str) -> PipelineResult:
        self.state = PipelineState.READING_HEADERS
        try:
            rows = read_rows(path)
        except (EmptyInputError, MalformedInputError, OSError):
            self.state = PipelineState.FAILED
            raise
        return self.run(rows)

    def run(self, rows: Iterable[Sequence[str]]) -> PipelineResult:
        started = time.perf_counter()
        self.stats = RunStats()
        self.state = PipelineState.READING_HEADERS
        iterator = iter(rows)
        try:
            headers = list(next(iterator))
        except StopIteration:
            self.state = PipelineState.FAILED
            raise EmptyInputError("input has no header row") from None
        index = column_index(headers, self.rules)
        if "customer_name" not in index:
            logger.warning("No customer name column among headers: %s", ", ".join(headers))

        self.state = PipelineState.CLEANING
        records: List[CustomerRecord] = []
        for row_number, raw_row in enumerate(iterator, start=1):
            self.stats.rows_read += 1
            row = self._fit_row(list(raw_row), len(headers), row_number)
            if not any(blank_to_none(value) for value in row):
                self.stats.rows_blank += 1
                continue
            record = self.build_record(row, index, row_number)
            if record is None:
                self.stats.rows_dropped += 1
                logger.info("Dropped row %d: no customer name", row_number)
                continue
            records.append(record)
        self.stats.rows_cleaned = len(records)

        self.state = PipelineState.CLUSTERING
        clustered = self.clusterer.cluster(records)
        self.stats.duplicate_groups = len(clustered.groups)
        self.stats.duplicates_dropped = clustered.duplicates_dropped
        self.stats.elapsed_seconds = time.perf_counter() - started

        self.state = PipelineState.DONE
        logger.info("\n%s", self.stats.summary())
        return PipelineResult(
            records=clustered.survivors,
            duplicate_groups=clustered.groups,
            stats=self.stats,
        )

    def _fit_row(self, row: List[str], width: int, row_number: int) -> List[str]:
        if len(row) == width:
            return row
        self.stats.rows_reshaped += 1
        logger.debug("Row %d has %d fields, expected %d", row_number, len(row), width)
        if len(row) < width:
            return row + [""] * (width - len(row))
        return row[:width]

    def build_record(
        self, row: Sequence[str], index: Dict[str, int], row_number: int = 0
    ) -> Optional[CustomerRecord]:
        def cell(name: str) -> Optional[str]:
            position = index.get(name)
            if position is None or position >= len(row):
                return None
            return blank_to_none(row[position])

        customer_name = canonicalize_company(clean_text(cell("customer_name")), self.rules)
        if not customer_name:
            return None

        def checked(name: str, cleaner: Callable[[Optional[str]], Optional[str]]) -> Optional[str]:
            raw = cell(name)
            if raw is None:
                return None
            cleaned = cleaner(raw)
            if cleaned is None:
                self._field_warning(name, raw, row_number)
            return cleaned

        def slots(columns: Tuple[str, ...], cleaner) -> Tuple[Optional[str], ...]:
            return tuple(checked(column, cleaner) for column in columns)

        phone_number = checked("phone_number", clean_phone)
        fax_number = checked("fax_number", clean_phone)
        for name, value in (("phone_number", phone_number), ("fax_number", fax_number)):
            if value is not None and not is_formatted_phone(value):
                self._field_warning(name, value, row_number)

        billing_address = checked("billing_address", clean_text)
        billing_city = checked("billing_city", clean_text)
        billing_state = checked("billing_state", lambda raw: clean_state(raw, self.rules))

        raw_id = cell("customer_id")
        customer_id = clean_customer_id(raw_id)
        if raw_id is not None and customer_id is None:
            self._field_warning("customer_id", raw_id, row_number)

        return CustomerRecord(
            customer_name=customer_name,
            customer_id=customer_id,
            billing_address=billing_address,
            billing_city=billing_city,
            billing_state=billing_state,
            billing_zip_code=checked(
                "billing_zip_code",
                lambda raw: clean_zip(raw, auto_hyphenate=self.settings.zip_auto_hyphenate),
            ),
            contact_name=checked("contact_name", clean_person_or_company_name),
            phone_number=phone_number,
            fax_number=fax_number,
            email_address=checked("email_address", clean_email),
            color_grades=slots(COLOR_GRADE_COLUMNS, clean_text),
            wall_losses=slots(WALL_LOSS_COLUMNS, clean_percentage),
            wstring_colors=slots(WSTRING_COLOR_COLUMNS, clean_text),
            wstring_losses=slots(WSTRING_LOSS_COLUMNS, clean_percentage),
            is_deleted=clean_flag(cell("is_deleted")),
            tenant_id=self.tenant_id,
            normalized_name=normalize_company_key(customer_name, self.rules),
            address_hash=address_fingerprint(billing_address, billing_city, billing_state),
            source_row=row_number,
        )

    def _field_warning(self, name: str, raw: str, row_number: int) -> None:
        self.stats.field_warnings[name] += 1
        logger.debug("Row %d: %s value %r did not validate", row_number, name, raw)


def pipeline_from_config(config: PipelineConfig) -> CustomerCleaningPipeline:
    rules = build_rule_tables(
        header_mappings=config.rules.header_mappings,
        company_variants=config.rules.company_variants,
    )
    clusterer = DuplicateClusterer(
        threshold=config.dedupe.duplicate_threshold,
        score_mode=config.dedupe.cluster_score,
    )
    return CustomerCleaningPipeline(
        rules=rules,
        settings=CleaningSettings(zip_auto_hyphenate=config.cleaning.zip_auto_hyphenate),
        clusterer=clusterer,
        tenant_id=config.tenant_id,
    )


def build(args: argparse.Namespace, config: Optional[PipelineConfig] = None) -> PipelineResult:
    config = config or load_config(args)
    if not config.inputs.path:
        raise ValueError("an input path is required")
    pipeline = pipeline_from_config(config)
    return pipeline.run_file(config.inputs.path)


def _write_outputs(result: PipelineResult, config: PipelineConfig) -> List[str]:
    saved: List[str] = []
    if config.outputs.path:
        write_clean_csv(result.records, config.outputs.path)
        saved.append(config.outputs.path)
    if config.outputs.report_path:
        write_duplicate_report(result.duplicate_groups, config.outputs.report_path)
        saved.append(config.outputs.report_path)
    else:
        print(render_duplicate_report(result.duplicate_groups), end="")
    if config.outputs.groups_csv:
        write_groups_csv(result.duplicate_groups, config.outputs.groups_csv)
        saved.append(config.outputs.groups_csv)
    return saved


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Clean and deduplicate a legacy customer export."
    )
    parser.add_argument("input_path", help="Raw customer CSV from the legacy database.")
    parser.add_argument("output_path", help="Where to write the clean customer CSV.")
    parser.add_argument("tenant_id", nargs="?", default=None, help="Tenant id.")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config.")
    parser.add_argument("--report", type=str, default=None, help="Write the duplicate report here.")
    parser.add_argument("--groups-csv", type=str, default=None, help="Duplicate groups CSV.")
    parser.add_argument("--duplicate-threshold", type=float, default=None)
    parser.add_argument("--cluster-score", choices=list(CLUSTER_SCORE_MODES), default=None)
    parser.add_argument(
        "--zip-auto-hyphenate",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Render bare 9-digit zips as ZIP+4 (default: off).",
    )
    parser.add_argument("--log-level", type=str, default=None, help="Override logging level")
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1
    configure_logging(config, level_override=args.log_level)

    try:
        result = build(args, config=config)
    except OSError as exc:
        logger.error("Unable to read %s: %s", config.inputs.path, exc)
        return 1
    except ValueError as exc:
        # empty or malformed input, or rule tables the config could not build
        logger.error("Processing failed: %s", exc)
        return 1

    try:
        saved = _write_outputs(result, config)
    except OSError as exc:
        logger.error("Unable to write outputs: %s", exc)
        return 1

    print(result.stats.summary())
    for path in saved:
        print(f"Saved: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
