"""Tests for the command-line entry point."""

import json

import pytest

from error_dedup.config import CacheConfig
from error_dedup.dedup import DeduplicationService
from main import build_parser, parse_signal, run_pipeline


def write_signals(path, records):
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n")


@pytest.fixture
def service():
    service = DeduplicationService(CacheConfig(cleanup_interval_seconds=0))
    yield service
    service.shutdown()


class TestParseSignal:
    def test_valid_line(self):
        sig = parse_signal('{"code": "DATABASE_ERROR", "message": "Query failed", "statusCode": 500}', "f")
        assert sig.code == "DATABASE_ERROR"
        assert sig.severity == "critical"

    def test_blank_line(self):
        assert parse_signal("   \n", "f") is None

    def test_malformed_json(self):
        assert parse_signal("{not json", "f") is None

    def test_missing_fields(self):
        assert parse_signal('{"message": "no code"}', "f") is None

    def test_non_object(self):
        assert parse_signal("[1, 2]", "f") is None

    def test_non_object_context(self):
        assert parse_signal('{"code": "X", "message": "boom", "context": "abc"}', "f") is None

    def test_deeply_nested_line(self):
        depth = 100000
        line = (
            '{"code": "X", "message": "boom", "context": '
            + '{"inner": ' * depth + '{"leaf": 1}' + "}" * depth + "}"
        )
        assert parse_signal(line, "f") is None


class TestRunPipeline:
    def test_text_summary(self, tmp_path, service, capsys):
        path = tmp_path / "signals.jsonl"
        write_signals(path, [
            {"code": "DATABASE_ERROR", "message": "Query failed", "statusCode": 500},
            {"code": "DATABASE_ERROR", "message": "Query failed", "statusCode": 500},
            "garbage",
            {"code": "VALIDATION_ERROR", "message": "Invalid input", "statusCode": 400},
        ])
        args = build_parser().parse_args([str(path)])

        assert run_pipeline(args, service) == 0

        out = capsys.readouterr().out
        assert "Total errors:     3" in out
        assert "Unique errors:    2" in out
        assert "DATABASE_ERROR: Query failed" in out

    def test_json_summary(self, tmp_path, service, capsys):
        path = tmp_path / "signals.jsonl"
        write_signals(path, [
            {"code": "DATABASE_ERROR", "message": "Query failed", "statusCode": 500},
        ] * 4)
        args = build_parser().parse_args([str(path), "--output", "json", "--top", "1"])

        assert run_pipeline(args, service) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["stats"]["total_errors"] == 4
        assert data["stats"]["hit_rate"] == 0.75
        assert data["most_frequent"][0]["count"] == 4

    def test_missing_file(self, tmp_path, service, capsys):
        args = build_parser().parse_args([str(tmp_path / "absent.jsonl")])
        assert run_pipeline(args, service) == 1
        assert "Error:" in capsys.readouterr().err

    def test_skips_non_object_context(self, tmp_path, service, capsys):
        path = tmp_path / "signals.jsonl"
        write_signals(path, [
            {"code": "X", "message": "boom", "context": {"a": 1}},
            {"code": "X", "message": "boom", "context": "abc"},
            {"code": "X", "message": "boom", "context": {"a": 1}},
        ])
        args = build_parser().parse_args([str(path)])

        assert run_pipeline(args, service) == 0
        assert "Total errors:     2" in capsys.readouterr().out


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.files == ["-"]
        assert args.output == "text"
        assert args.top == 5
        assert args.config is None
        assert args.dashboard_port is None
