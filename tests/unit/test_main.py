# tests/unit/test_main.py - v2
"""Tests for main.py - CLI entry point."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from promptaudit.backends.errors import AllBackendsUnavailableError
from promptaudit.backends.templates import INSTRUCTION_TEMPLATE_HASH
from promptaudit.cache.json_store import JsonResultCache
from promptaudit.logging.logger import ROOT_LOGGER
from promptaudit.main import (
    EXIT_ERROR,
    EXIT_NO_DATA,
    EXIT_PROVIDER_UNAVAILABLE,
    EXIT_SUCCESS,
    _build_parser,
    main,
)
from promptaudit.pipeline.models import NoPromptsError, OrchestrationResult
from tests.conftest import make_result


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run every CLI test away from any real .env and cache."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CACHE_ROOT", str(tmp_path / "cache"))
    yield
    logging.getLogger(ROOT_LOGGER).handlers.clear()


@pytest.fixture
def prompts_file(tmp_path) -> Path:
    path = tmp_path / "prompts.jsonl"
    records = [
        {"text": "fix it", "timestamp": "2025-01-15T09:00:00Z", "source_id": "s"},
        {"text": "add tests for login", "timestamp": "2025-01-15T09:05:00Z", "source_id": "s"},
    ]
    path.write_text("\n".join(json.dumps(r) for r in records), encoding="utf-8")
    return path


def _outcome() -> OrchestrationResult:
    return OrchestrationResult(
        result=make_result(total=2, score=8.0, top_suggestion="Keep going"),
        backend="ollama:llama3.2",
        batch_count=1,
        analyzed_batches=1,
    )


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------

class TestBuildParser:
    def test_version_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            _build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_analyze_subcommand(self):
        args = _build_parser().parse_args([
            "analyze", "p.jsonl", "--date", "2025-01-15", "--backend", "google",
            "--no-cache", "-o", "/tmp/report.json",
        ])
        assert args.command == "analyze"
        assert args.file == Path("p.jsonl")
        assert args.date == "2025-01-15"
        assert args.backend == "google"
        assert args.no_cache is True
        assert args.output == Path("/tmp/report.json")

    def test_analyze_defaults(self):
        args = _build_parser().parse_args(["analyze", "p.jsonl"])
        assert args.date is None
        assert args.backend is None
        assert args.services is None
        assert args.no_cache is False
        assert args.output is None

    def test_cache_subcommands(self):
        args = _build_parser().parse_args(["cache", "sweep", "--ttl-hours", "12"])
        assert args.cache_command == "sweep"
        assert args.ttl_hours == 12


# ---------------------------------------------------------------------------
# Exit status tests
# ---------------------------------------------------------------------------

class TestMain:
    def test_no_command(self, capsys):
        assert main([]) == EXIT_ERROR

    def test_configuration_error(self, prompts_file, capsys):
        assert main(["analyze", str(prompts_file), "--services", "bogus"]) == EXIT_ERROR
        assert "Configuration error" in capsys.readouterr().err

    def test_success_writes_report_to_stdout(self, prompts_file, capsys):
        with patch("promptaudit.api.facade.analyze", new=AsyncMock(return_value=_outcome())) as mock:
            assert main(["analyze", str(prompts_file), "--backend", "ollama"]) == EXIT_SUCCESS
        captured = capsys.readouterr()
        report = json.loads(captured.out)
        assert report["stats"]["totalPrompts"] == 2
        assert report["topSuggestion"] == "Keep going"
        assert "Analysis complete" in captured.err
        assert mock.await_args.kwargs["force_backend"] == "ollama"
        assert len(mock.await_args.args[0]) == 2

    def test_report_to_file(self, prompts_file, tmp_path, capsys):
        output = tmp_path / "out" / "report.json"
        with patch("promptaudit.api.facade.analyze", new=AsyncMock(return_value=_outcome())):
            assert main(["analyze", str(prompts_file), "-o", str(output)]) == EXIT_SUCCESS
        assert json.loads(output.read_text(encoding="utf-8"))["date"] == "2025-01-15"
        assert capsys.readouterr().out == ""

    def test_no_cache_flag_reaches_settings(self, prompts_file):
        with patch("promptaudit.api.facade.analyze", new=AsyncMock(return_value=_outcome())) as mock:
            main(["analyze", str(prompts_file), "--no-cache"])
        assert mock.await_args.kwargs["settings"].bypass_cache is True

    def test_no_prompts(self, prompts_file):
        with patch("promptaudit.api.facade.analyze", new=AsyncMock(side_effect=NoPromptsError())):
            assert main(["analyze", str(prompts_file), "--date", "2024-01-01"]) == EXIT_NO_DATA

    def test_no_backend_available(self, prompts_file):
        error = AllBackendsUnavailableError(["ollama", "anthropic"])
        with patch("promptaudit.api.facade.analyze", new=AsyncMock(side_effect=error)):
            assert main(["analyze", str(prompts_file)]) == EXIT_PROVIDER_UNAVAILABLE

    def test_unexpected_error(self, prompts_file):
        with patch("promptaudit.api.facade.analyze", new=AsyncMock(side_effect=RuntimeError("boom"))):
            assert main(["analyze", str(prompts_file)]) == EXIT_ERROR

    def test_unreadable_prompt_file(self, tmp_path):
        assert main(["analyze", str(tmp_path / "missing.jsonl")]) == EXIT_ERROR


class TestCacheCommands:
    def _populate(self, root: Path) -> None:
        store = JsonResultCache(root, template_hash=INSTRUCTION_TEMPLATE_HASH)
        asyncio.run(store.put_result(["a"], "ollama:llama3.2", make_result(total=1)))

    def test_clear(self, tmp_path, capsys):
        self._populate(tmp_path / "cache")
        assert main(["cache", "clear"]) == EXIT_SUCCESS
        assert "Removed 1 cache file(s)" in capsys.readouterr().err

    def test_sweep_keeps_fresh_entries(self, tmp_path, capsys):
        self._populate(tmp_path / "cache")
        assert main(["cache", "sweep"]) == EXIT_SUCCESS
        assert "Removed 0 expired" in capsys.readouterr().err
