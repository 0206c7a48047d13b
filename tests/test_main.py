"""
Tests for the command-line entry point.
"""

import json
import logging
import sys

import pytest

import main
from brandops.logging_config import ROOT_LOGGER


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger(ROOT_LOGGER)
    saved = (list(root.handlers), root.level, root.propagate)
    yield
    root.handlers, root.level, root.propagate = saved[0], saved[1], saved[2]


def _payload(out: str) -> dict:
    """Extract the pretty-printed payload from stdout (log lines are single-line)."""
    lines = out.splitlines()
    start = lines.index("{")
    return json.loads("\n".join(lines[start:]))


def _run(monkeypatch, *argv: str) -> None:
    monkeypatch.setattr(sys, "argv", ["main.py", *argv])
    main.main()


class TestInsightsCommand:
    def test_fast_mode_prints_kpis(self, monkeypatch, capsys) -> None:
        _run(monkeypatch, "insights", "--page", "orders", "--mode", "fast", "--mock")
        data = _payload(capsys.readouterr().out)
        assert data["page"] == "orders"
        assert data["mode"] == "fast"
        assert data["brand"] == "Callahan-Smith"
        assert data["kpis"]["order_count"] == 20
        assert data["insights"] == []

    def test_insights_mode_uses_mock_llm(self, monkeypatch, capsys) -> None:
        _run(monkeypatch, "insights", "--page", "inventory", "--mode", "insights", "--mock")
        data = _payload(capsys.readouterr().out)
        assert data["insights_status"] == "generated"
        assert data["insights"][0]["id"] == "inventory-insight-0"

    def test_invalid_mode_exits_with_error(self, monkeypatch, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _run(monkeypatch, "insights", "--page", "orders", "--mode", "turbo", "--mock")
        assert exc_info.value.code == 1
        assert "Invalid mode" in capsys.readouterr().err

    def test_unknown_page_rejected_by_parser(self, monkeypatch) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _run(monkeypatch, "insights", "--page", "billing", "--mock")
        assert exc_info.value.code == 2


class TestNoCommand:
    def test_prints_help_and_exits(self, monkeypatch, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _run(monkeypatch)
        assert exc_info.value.code == 1
        assert "insights" in capsys.readouterr().out
