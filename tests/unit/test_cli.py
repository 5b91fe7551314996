"""Tests for CLI interface."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from src.core.cli import SAMPLE_DOCUMENTS, main, run_demo, run_query


class TestCLI:
    def test_demo_runs_successfully(self, capsys: pytest.CaptureFixture[str]) -> None:
        run_demo("How should we structure onboarding emails?")
        captured = capsys.readouterr()
        assert "Content Core - Demo Mode" in captured.out
        assert "Ingesting" in captured.out
        assert "Generating ideas" in captured.out
        assert "JSON output:" in captured.out

    def test_demo_json_has_five_ideas(self, capsys: pytest.CaptureFixture[str]) -> None:
        run_demo("social media posting cadence")
        captured = capsys.readouterr()
        data = json.loads(captured.out.split("JSON output:\n", 1)[1])
        assert data["query"] == "social media posting cadence"
        assert len(data["ideas"]) == 5

    def test_query_runs_successfully(self, capsys: pytest.CaptureFixture[str]) -> None:
        run_query("onboarding emails subject lines", limit=3, threshold=None)
        captured = capsys.readouterr()
        data = json.loads(captured.out)
        assert data["query"] == "onboarding emails subject lines"
        assert isinstance(data["results"], list)
        assert len(data["results"]) <= 3

    def test_sample_documents_valid(self) -> None:
        assert len(SAMPLE_DOCUMENTS) >= 3
        for title, text, metadata in SAMPLE_DOCUMENTS:
            assert title
            assert len(text) > 100
            assert metadata["category_ids"]

    def test_main_no_args(self) -> None:
        with pytest.raises(SystemExit):
            main([])

    def test_main_demo(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("sys.argv", ["content-core", "demo"]):
            main()
        captured = capsys.readouterr()
        assert "Content Core" in captured.out

    def test_main_query(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["query", "brand voice headlines"])
        captured = capsys.readouterr()
        data = json.loads(captured.out)
        assert "results" in data

    def test_main_ideas(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["ideas", "founder", "fintech", "--count", "3"])
        captured = capsys.readouterr()
        data = json.loads(captured.out)
        assert data["provider"] == "mock"
        assert len(data["ideas"]) == 3

    def test_main_providers(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["providers"])
        data = json.loads(capsys.readouterr().out)
        assert "mock" in data

    def test_main_ingest(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("Webinars convert well for enterprise buyers. Keep them short.")
        main(["ingest", str(path), "--category", "events"])
        data = json.loads(capsys.readouterr().out)
        assert data[0]["status"] == "ready"
        assert data[0]["title"] == "notes.txt"

    def test_main_ingest_unsupported_exits(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "logo.png"
        path.write_bytes(b"\x89PNG")
        with pytest.raises(SystemExit):
            main(["ingest", str(path)])
        data = json.loads(capsys.readouterr().out)
        assert data[0]["status"] == "error"
