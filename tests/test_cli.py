"""Tests for the command-line entry point."""

from datetime import datetime, timezone

import pytest

from hacksniffer.cli import build_parser, print_report
from hacksniffer.scrapers.ingestion_service import IngestionReport, SourceRunResult


class TestParser:
    def test_once_with_json(self):
        args = build_parser().parse_args(["once", "--json"])
        assert args.command == "once"
        assert args.json is True

    def test_watch(self):
        args = build_parser().parse_args(["--log-level", "debug", "watch"])
        assert args.command == "watch"
        assert args.log_level == "debug"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


def test_print_report_lists_every_source(capsys):
    report = IngestionReport(
        started_at=datetime(2030, 3, 1, 3, 0, tzinfo=timezone.utc),
        duration_ms=1234,
        results=[
            SourceRunResult(source_id="devpost", events_found=4, events_created=3, events_updated=1),
            SourceRunResult(source_id="mlh", errors=["Adapter error: timeout"], aborted=True),
        ],
    )

    print_report(report)

    output = capsys.readouterr().out
    assert "devpost" in output
    assert "created=3" in output
    assert "mlh" in output
    assert "failed" in output
    assert "Adapter error: timeout" in output
