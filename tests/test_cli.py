from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
from conftest import FakeSearchClient, rate_limited_payload

from news_requester import cli
from news_requester.config.settings import Settings, get_settings
from news_requester.errors import ConfigurationError
from news_requester.storage.memory import InMemoryRequestStorage
from news_requester.storage.models import SourceConfig

IN_WINDOW = datetime(2024, 3, 20, 23, 1, tzinfo=UTC)
OUT_OF_WINDOW = datetime(2024, 3, 20, 14, 30, tzinfo=UTC)


class HandoffSpy:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


@pytest.fixture
def spreadsheet(tmp_path: Path) -> Path:
    path = tmp_path / "queries.csv"
    path.write_text(
        "id,andString,orString,notString\n1,recall,,\n2,hazard,fire burn,\n",
        encoding="utf-8",
    )
    return path


def _settings(spreadsheet: Path, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "query_spreadsheet_path": str(spreadsheet),
        "activate_requests": True,
        "pacing_delay_ms": 0,
    }
    values.update(overrides)
    return Settings(**values)


def _run(settings: Settings, storage: InMemoryRequestStorage, **kwargs: Any) -> int:
    kwargs.setdefault("now", IN_WINDOW)
    kwargs.setdefault("client", FakeSearchClient())
    kwargs.setdefault("handoff", HandoffSpy())
    return cli.run(settings=settings, storage=storage, sleep=lambda _: None, **kwargs)


def test_run_spends_budget_and_hands_off(
    storage: InMemoryRequestStorage,
    source: SourceConfig,
    spreadsheet: Path,
) -> None:
    client = FakeSearchClient()
    handoff = HandoffSpy()

    exit_code = _run(_settings(spreadsheet), storage, client=client, handoff=handoff)

    assert exit_code == 0
    assert len(client.calls) == 5
    assert [call[0].and_string for call in client.calls] == [
        "recall",
        "hazard",
        "recall",
        "hazard",
        "recall",
    ]
    assert len(storage.records) == 5
    assert handoff.calls == 1


def test_guardrail_violation_stops_before_any_request(
    storage: InMemoryRequestStorage,
    source: SourceConfig,
    spreadsheet: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    client = FakeSearchClient()

    exit_code = _run(_settings(spreadsheet), storage, client=client, now=OUT_OF_WINDOW)

    assert exit_code == 1
    assert client.calls == []
    assert "--run-anyway" in caplog.text
    assert "window_start=22:55" in caplog.text


def test_run_anyway_bypasses_guardrail(
    storage: InMemoryRequestStorage,
    source: SourceConfig,
    spreadsheet: Path,
) -> None:
    client = FakeSearchClient()

    exit_code = _run(
        _settings(spreadsheet, request_budget=1),
        storage,
        client=client,
        now=OUT_OF_WINDOW,
        run_anyway=True,
    )

    assert exit_code == 0
    assert len(client.calls) == 1


def test_invalid_guardrail_target_is_config_error(
    storage: InMemoryRequestStorage,
    source: SourceConfig,
    spreadsheet: Path,
) -> None:
    assert _run(_settings(spreadsheet, guardrail_target_time="11pm"), storage) == 1


def test_unknown_source_fails(storage: InMemoryRequestStorage, spreadsheet: Path) -> None:
    assert _run(_settings(spreadsheet), storage) == 1


def test_missing_spreadsheet_setting_fails(
    storage: InMemoryRequestStorage,
    source: SourceConfig,
    spreadsheet: Path,
) -> None:
    assert _run(_settings(spreadsheet, query_spreadsheet_path=""), storage) == 1


def test_rate_limit_exits_non_zero_after_handoff(
    storage: InMemoryRequestStorage,
    source: SourceConfig,
    spreadsheet: Path,
) -> None:
    handoff = HandoffSpy()
    client = FakeSearchClient([rate_limited_payload()])

    exit_code = _run(_settings(spreadsheet), storage, client=client, handoff=handoff)

    assert exit_code == 1
    assert len(client.calls) == 1
    assert handoff.calls == 1


def test_dry_run_records_nothing(
    storage: InMemoryRequestStorage,
    source: SourceConfig,
    spreadsheet: Path,
) -> None:
    client = FakeSearchClient()

    exit_code = _run(_settings(spreadsheet, activate_requests=False), storage, client=client)

    assert exit_code == 0
    assert client.calls == []
    assert storage.records == []


def test_build_storage_requires_database_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(ConfigurationError, match="DATABASE_URL"):
        cli.build_storage(Settings(database_url=""))


def test_main_rejects_invalid_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NEWS_REQUESTER_REQUEST_BUDGET", "0")
    get_settings.cache_clear()
    try:
        assert cli.main([]) == 1
    finally:
        get_settings.cache_clear()


def test_main_passes_run_anyway_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_run(*, settings: Settings, run_anyway: bool) -> int:
        captured["run_anyway"] = run_anyway
        return 0

    monkeypatch.setattr(cli, "run", fake_run)
    monkeypatch.setattr(cli, "setup_logging", lambda _settings: None)

    assert cli.main(["--run-anyway"]) == 0
    assert captured == {"run_anyway": True}
