import logging
from types import SimpleNamespace

import pandas as pd
import pytest

from customer_etl import clean_customers as cc
from customer_etl.common import load_config
from customer_etl.config_loader import PipelineConfig
from customer_etl.logging_utils import LOG_LEVEL_ENV, configure_logging, resolve_log_level
from customer_etl.models import DuplicateReason
from customer_etl.report import duplicate_groups_frame, render_duplicate_report
from customer_etl.rules import CANONICAL_COLUMNS
from customer_etl.sources import EmptyInputError, MalformedInputError, read_rows

HEADER = [
    "CustID",
    "CustName",
    "BillAddr",
    "BillCity",
    "BillState",
    "BillZip",
    "Contact",
    "Phone",
    "Email",
    "Color1",
    "Loss1",
    "Deleted",
]

CHEVRON_ROWS = [
    ["101", "Chevron Corp", "123 Main", "Houston", "TX", "77001", "jane doe", "5551234567",
     "AP@Chevron.com", "Amber", "12.5", "0"],
    ["102", "Chevron Corporation", "123 Main", "Houston", "Texas", "77001", "", "555-123-4567",
     "", "", "", "NULL"],
]


def _write_csv(path, rows):
    pd.DataFrame(rows[1:], columns=rows[0]).to_csv(path, index=False, encoding="utf-8")


def _args(input_path, output_path, **overrides):
    values = dict(
        input_path=str(input_path),
        output_path=str(output_path),
        tenant_id=None,
        config=None,
        report=None,
        groups_csv=None,
        duplicate_threshold=None,
        cluster_score=None,
        zip_auto_hyphenate=None,
        log_level=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_pipeline_chevron_scenario():
    pipeline = cc.CustomerCleaningPipeline(tenant_id="acme")
    result = pipeline.run([HEADER] + CHEVRON_ROWS)

    assert pipeline.state == cc.PipelineState.DONE
    assert len(result.records) == 1
    record = result.records[0]
    assert record.customer_name == "Chevron Corporation"
    assert record.customer_id == 101
    assert record.source_row == 1
    assert record.billing_state == "TX"
    assert record.phone_number == "(555) 123-4567"
    assert record.email_address == "ap@chevron.com"
    assert record.contact_name == "Jane Doe"
    assert record.color_grades[0] == "Amber"
    assert record.wall_losses[0] == "12.50"
    assert record.tenant_id == "acme"
    assert record.potential_duplicate is False

    assert len(result.duplicate_groups) == 1
    group = result.duplicate_groups[0]
    assert group.reason == DuplicateReason.SAME_NAME_AND_ADDRESS
    assert group.score == pytest.approx(0.95)
    assert [member.source_row for member in group.records] == [1, 2]

    stats = result.stats
    assert (stats.rows_read, stats.rows_cleaned, stats.rows_dropped) == (2, 2, 0)
    assert (stats.duplicate_groups, stats.duplicates_dropped, stats.clean_records) == (1, 1, 1)


def test_pipeline_drops_rows_without_name():
    blank_name = ["7", "   ", "1 Oak", "Tulsa", "OK", "", "", "", "", "", "", ""]
    rows = [HEADER, blank_name] + CHEVRON_ROWS
    result = cc.CustomerCleaningPipeline().run(rows)

    assert result.stats.rows_dropped == 1
    assert [record.source_row for record in result.records] == [2]
    grouped_rows = {
        member.source_row for group in result.duplicate_groups for member in group.records
    }
    assert 1 not in grouped_rows
    assert "Status: COMPLETED WITH WARNINGS" in result.stats.summary()


def test_pipeline_skips_blank_rows():
    rows = [HEADER, CHEVRON_ROWS[0], ["", " ", "NULL"] + [""] * 9, CHEVRON_ROWS[1]]
    result = cc.CustomerCleaningPipeline().run(rows)

    assert result.stats.rows_blank == 1
    assert result.stats.rows_dropped == 0
    assert [member.source_row for member in result.duplicate_groups[0].records] == [1, 3]


def test_pipeline_reshapes_ragged_rows():
    rows = [
        ["CustName", "Phone", "Email"],
        ["Acme Oil Corp"],
        ["Gulf Pipe co", "5550001111", "ops@gulfpipe.com", "extra", "cells"],
    ]
    pipeline = cc.CustomerCleaningPipeline()
    result = pipeline.run(rows)

    assert pipeline.stats.rows_reshaped == 2
    assert [record.customer_name for record in result.records] == [
        "Acme Oil Corporation",
        "Gulf Pipe Company",
    ]
    assert result.records[0].phone_number is None
    assert result.records[1].email_address == "ops@gulfpipe.com"


def test_pipeline_counts_field_warnings_and_keeps_raw_phone():
    rows = [
        ["CustName", "Phone", "Email", "BillState", "Loss1", "CustID"],
        ["Acme Oil", "555-12", "not-an-email", "Tex", "140", "A7"],
    ]
    result = cc.CustomerCleaningPipeline().run(rows)

    record = result.records[0]
    assert record.phone_number == "555-12"
    assert record.email_address is None
    assert record.billing_state is None
    assert record.wall_losses[0] is None
    assert record.customer_id is None
    warnings = result.stats.field_warnings
    for name in ("phone_number", "email_address", "billing_state", "wall_loss_1", "customer_id"):
        assert warnings[name] == 1, name


def test_pipeline_zip_hyphenation_is_opt_in():
    rows = [["CustName", "BillZip"], ["Acme Oil", "770011234"]]
    plain = cc.CustomerCleaningPipeline().run(rows)
    hyphenated = cc.CustomerCleaningPipeline(
        settings=cc.CleaningSettings(zip_auto_hyphenate=True)
    ).run(rows)
    assert plain.records[0].billing_zip_code == "770011234"
    assert hyphenated.records[0].billing_zip_code == "77001-1234"


def test_pipeline_header_only_input():
    pipeline = cc.CustomerCleaningPipeline()
    result = pipeline.run([HEADER])
    assert result.records == []
    assert result.duplicate_groups == []
    assert pipeline.state == cc.PipelineState.DONE
    assert "Status: SUCCESS" in result.stats.summary()


def test_pipeline_empty_input_fails():
    pipeline = cc.CustomerCleaningPipeline()
    with pytest.raises(EmptyInputError):
        pipeline.run([])
    assert pipeline.state == cc.PipelineState.FAILED


def test_read_rows_pads_and_truncates(tmp_path):
    path = tmp_path / "ragged.csv"
    path.write_text('a,b,c\n1,2\n1,2,3,4\n"x, y",,z\n', encoding="utf-8")
    assert read_rows(str(path)) == [
        ["a", "b", "c"],
        ["1", "2", ""],
        ["1", "2", "3"],
        ["x, y", "", "z"],
    ]


def test_read_rows_empty_file(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(EmptyInputError):
        read_rows(str(path))


def test_read_rows_rejects_unterminated_quote(tmp_path):
    path = tmp_path / "broken.csv"
    path.write_text(
        'CustName,Phone\nAcme Oil,5551234567\n"Beta Oil,5550000000\nGamma,1\n', encoding="utf-8"
    )
    with pytest.raises(MalformedInputError):
        read_rows(str(path))


def test_read_rows_keeps_quoted_line_breaks(tmp_path):
    path = tmp_path / "multiline.csv"
    path.write_text('CustName,Notes\nAcme Oil,"gate 4\nrear dock"\nGamma,\n', encoding="utf-8")
    assert read_rows(str(path)) == [
        ["CustName", "Notes"],
        ["Acme Oil", "gate 4\nrear dock"],
        ["Gamma", ""],
    ]


def test_run_file_fails_on_malformed_input(tmp_path):
    path = tmp_path / "broken.csv"
    path.write_text('CustName\n"Beta Oil\nGamma\n', encoding="utf-8")
    pipeline = cc.CustomerCleaningPipeline()
    with pytest.raises(MalformedInputError):
        pipeline.run_file(str(path))
    assert pipeline.state == cc.PipelineState.FAILED


def test_build_reads_file(tmp_path):
    input_csv = tmp_path / "customers.csv"
    _write_csv(input_csv, [HEADER] + CHEVRON_ROWS)
    result = cc.build(_args(input_csv, tmp_path / "out.csv", tenant_id="t-1"))
    assert [record.customer_name for record in result.records] == ["Chevron Corporation"]
    assert result.records[0].tenant_id == "t-1"


def test_main_writes_clean_csv_and_reports(tmp_path, capsys):
    input_csv = tmp_path / "customers.csv"
    output_csv = tmp_path / "clean.csv"
    groups_csv = tmp_path / "groups.csv"
    _write_csv(input_csv, [HEADER] + CHEVRON_ROWS)

    exit_code = cc.main(
        [str(input_csv), str(output_csv), "tenant-9", "--groups-csv", str(groups_csv)]
    )

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Found 1 potential duplicate group(s)" in out
    assert "Duplicate group 1 (score: 0.95, reason: same_name_and_address):" in out
    assert "Customer Cleaning Summary" in out
    assert f"Saved: {output_csv}" in out

    clean = pd.read_csv(output_csv, dtype=str, keep_default_na=False)
    assert list(clean.columns) == list(CANONICAL_COLUMNS)
    assert clean["customer_name"].tolist() == ["Chevron Corporation"]
    assert clean.iloc[0]["tenant_id"] == "tenant-9"
    assert clean.iloc[0]["is_deleted"] == "false"
    assert clean.iloc[0]["phone_number"] == "(555) 123-4567"

    groups = pd.read_csv(groups_csv, dtype=str, keep_default_na=False)
    assert groups["role"].tolist() == ["survivor", "duplicate"]
    assert groups["source_row"].tolist() == ["1", "2"]


def test_main_writes_report_file(tmp_path, capsys):
    input_csv = tmp_path / "customers.csv"
    report_path = tmp_path / "duplicates.txt"
    _write_csv(input_csv, [HEADER] + CHEVRON_ROWS[:1])

    exit_code = cc.main(
        [str(input_csv), str(tmp_path / "clean.csv"), "--report", str(report_path)]
    )

    assert exit_code == 0
    assert report_path.read_text(encoding="utf-8") == "No potential duplicates found\n"
    assert "No potential duplicates found" not in capsys.readouterr().out


def test_main_returns_error_for_empty_input(tmp_path):
    input_csv = tmp_path / "empty.csv"
    input_csv.write_text("", encoding="utf-8")
    output_csv = tmp_path / "clean.csv"
    assert cc.main([str(input_csv), str(output_csv)]) == 1
    assert not output_csv.exists()


def test_main_returns_error_for_missing_input(tmp_path):
    assert cc.main([str(tmp_path / "missing.csv"), str(tmp_path / "clean.csv")]) == 1


def test_main_returns_error_for_unterminated_quote(tmp_path):
    input_csv = tmp_path / "broken.csv"
    input_csv.write_text('CustName,Phone\nAcme Oil,1\n"Beta Oil,2\nGamma,3\n', encoding="utf-8")
    output_csv = tmp_path / "clean.csv"
    assert cc.main([str(input_csv), str(output_csv)]) == 1
    assert not output_csv.exists()


def test_main_returns_error_for_unparseable_config(tmp_path):
    input_csv = tmp_path / "customers.csv"
    _write_csv(input_csv, [HEADER] + CHEVRON_ROWS)
    config_path = tmp_path / "config.yaml"
    config_path.write_text("dedupe: [unclosed\n", encoding="utf-8")
    argv = [str(input_csv), str(tmp_path / "clean.csv"), "--config", str(config_path)]
    assert cc.main(argv) == 1


def test_main_returns_error_for_bad_header_mapping(tmp_path):
    input_csv = tmp_path / "customers.csv"
    _write_csv(input_csv, [HEADER] + CHEVRON_ROWS)
    config_path = tmp_path / "config.yaml"
    config_path.write_text("rules:\n  header_mappings:\n    acct: account\n", encoding="utf-8")
    output_csv = tmp_path / "clean.csv"
    assert cc.main([str(input_csv), str(output_csv), "--config", str(config_path)]) == 1
    assert not output_csv.exists()


def test_clean_csv_writes_deleted_flag(tmp_path):
    input_csv = tmp_path / "customers.csv"
    output_csv = tmp_path / "clean.csv"
    _write_csv(
        input_csv,
        [["CustName", "Deleted"], ["Acme Oil", "1"], ["Gulf Pipe", "yes"], ["Beta Oil", "0"]],
    )

    assert cc.main([str(input_csv), str(output_csv)]) == 0

    clean = pd.read_csv(output_csv, dtype=str, keep_default_na=False)
    assert clean["is_deleted"].tolist() == ["true", "true", "false"]


def test_load_config_precedence(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "\n".join(
            [
                "tenant_id: yaml-tenant",
                "dedupe:",
                "  duplicate_threshold: 0.5",
                "  cluster_score: mean",
                "cleaning:",
                "  zip_auto_hyphenate: true",
                "outputs:",
                "  report_path: from-yaml.txt",
                "logging:",
                "  level: info",
                "rules:",
                "  company_variants:",
                "    oxy: Occidental Petroleum Corporation",
                "",
            ]
        ),
        encoding="utf-8",
    )
    config = load_config(
        _args(
            "in.csv",
            "out.csv",
            config=str(config_path),
            tenant_id="cli",
            cluster_score="running_average",
        )
    )

    assert config.tenant_id == "cli"
    assert config.dedupe.duplicate_threshold == 0.5
    assert config.dedupe.cluster_score == "running_average"
    assert config.cleaning.zip_auto_hyphenate is True
    assert config.outputs.report_path == "from-yaml.txt"
    assert config.logging.level == "INFO"
    assert config.rules.company_variants == {"oxy": "Occidental Petroleum Corporation"}


def test_load_config_defaults_and_validation(tmp_path):
    config = load_config(_args("in.csv", "out.csv"))
    assert config.tenant_id == "local-dev"
    assert config.dedupe.duplicate_threshold == 0.85
    assert config.dedupe.cluster_score == "running_average"
    assert config.cleaning.zip_auto_hyphenate is False

    with pytest.raises(ValueError):
        load_config(_args("in.csv", "out.csv", duplicate_threshold=1.5))


def test_configure_logging_env_wins(monkeypatch):
    root = logging.getLogger()
    previous = root.level
    monkeypatch.setenv(LOG_LEVEL_ENV, "debug")
    try:
        assert resolve_log_level(PipelineConfig(), "ERROR") == ("DEBUG", LOG_LEVEL_ENV)
        assert configure_logging(PipelineConfig(), level_override="ERROR") == logging.DEBUG
        assert root.level == logging.DEBUG
        monkeypatch.delenv(LOG_LEVEL_ENV)
        configure_logging(PipelineConfig(), level_override="ERROR")
        assert root.level == logging.ERROR
    finally:
        root.setLevel(previous)
        logging.captureWarnings(False)


def test_configure_logging_unknown_level_falls_back(monkeypatch, caplog):
    root = logging.getLogger()
    previous = root.level
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    try:
        with caplog.at_level(logging.WARNING, logger="customer_etl.logging_utils"):
            level = configure_logging(PipelineConfig(), level_override="chatty")
        assert level == logging.WARNING
        assert "Unknown log level 'CHATTY' from --log-level" in caplog.text
    finally:
        root.setLevel(previous)
        logging.captureWarnings(False)


def test_report_rendering():
    result = cc.CustomerCleaningPipeline().run([HEADER] + CHEVRON_ROWS)
    text = render_duplicate_report(result.duplicate_groups)
    assert text.splitlines() == [
        "Found 1 potential duplicate group(s)",
        "Duplicate group 1 (score: 0.95, reason: same_name_and_address):",
        "  - Chevron Corporation (Houston, TX)",
        "  - Chevron Corporation (Houston, TX)",
    ]
    assert render_duplicate_report([]) == "No potential duplicates found\n"
    frame = duplicate_groups_frame(result.duplicate_groups)
    assert frame["customer_id"].tolist() == [101, 102]
