"""Exit status tests for the entry point."""

from __future__ import annotations

import pytest

import main
from gallerysync.errors import ConfigError
from gallerysync.models import CollectionResult, CollectionState, SyncReport


@pytest.fixture(autouse=True)
def _config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "load_user_config", lambda: {"days": 90, "workers": 1, "logLevel": "INFO"})


def test_success_exits_zero(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    report = SyncReport([CollectionResult("bouviers", state=CollectionState.DONE)])
    monkeypatch.setattr(main, "run_sync", lambda config: report)

    assert main.main() == 0
    assert "bouviers: current=0, archived=0" in capsys.readouterr().out


def test_failed_collection_exits_one(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    report = SyncReport([
        CollectionResult("bouviers", state=CollectionState.DONE),
        CollectionResult("lowchen", state=CollectionState.FAILED, error="HTTP 403"),
    ])
    monkeypatch.setattr(main, "run_sync", lambda config: report)

    assert main.main() == 1
    captured = capsys.readouterr()
    assert "lowchen: FAILED (HTTP 403)" in captured.out
    assert "lowchen" in captured.err


def test_config_error_exits_two(monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(config):
        raise ConfigError("Missing folder id(s): GDRIVE_LOWCHEN_FOLDER_ID")

    monkeypatch.setattr(main, "run_sync", boom)

    assert main.main() == 2
