from __future__ import annotations

import json

import fetch_incidents
from cotripfeed.ingestion.errors import TransportError
from cotripfeed.ingestion.ledger import read_latest_ledger_entry
from cotripfeed.ingestion.schemas import (
    FeatureCollection,
    FeatureProperties,
    OutputFeature,
    OutputGeometry,
)
from cotripfeed.settings import AppConfig


def _write_config(tmp_path, token: str = "secret") -> str:
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "paths:",
                f"  output_dir: {tmp_path / 'out'}",
                f"  state_dir: {tmp_path / 'state'}",
                "layer:",
                f"  token: '{token}'",
            ]
        ),
        encoding="utf-8",
    )
    return str(path)


def _quiet(monkeypatch) -> None:
    monkeypatch.delenv("COTRIP_TOKEN", raising=False)
    monkeypatch.setattr(fetch_incidents, "configure_logging", lambda **kwargs: None)


def test_success_writes_ok_ledger_entry(monkeypatch, tmp_path) -> None:
    _quiet(monkeypatch)
    seen: dict[str, object] = {}

    def fake_run_once(config, *, sink=None, **kwargs):
        seen["config"] = config
        seen["sink"] = sink
        return FeatureCollection(
            features=[
                OutputFeature(
                    id="A",
                    properties=FeatureProperties(callsign="Crash"),
                    geometry=OutputGeometry(type="Point", coordinates=[0, 0]),
                )
            ]
        )

    monkeypatch.setattr(fetch_incidents, "run_once", fake_run_once)
    output = tmp_path / "custom" / "incidents.geojson"

    code = fetch_incidents.main(["--config", _write_config(tmp_path), "--output", str(output), "--no-polygon"])

    assert code == 0
    assert seen["config"].layer.allow_polygon is False
    assert seen["sink"].path == output
    entry = read_latest_ledger_entry(tmp_path / "state" / "ingest_ledger.jsonl")
    assert entry is not None
    assert entry["ok"] is True
    assert entry["features"] == 1
    assert entry["output_path"] == str(output)


def test_ingest_error_returns_one_and_records_failure(monkeypatch, tmp_path) -> None:
    _quiet(monkeypatch)

    def failing_run_once(config, **kwargs):
        raise TransportError("CoTrip request failed with HTTP 503.", status_code=503)

    monkeypatch.setattr(fetch_incidents, "run_once", failing_run_once)

    code = fetch_incidents.main(["--config", _write_config(tmp_path)])

    assert code == 1
    entry = read_latest_ledger_entry(tmp_path / "state" / "ingest_ledger.jsonl")
    assert entry is not None
    assert entry["ok"] is False
    assert entry["error_code"] == "http_503"
    assert not (tmp_path / "out" / "incidents.geojson").exists()


def test_missing_token_fails_without_output(monkeypatch, tmp_path) -> None:
    _quiet(monkeypatch)

    code = fetch_incidents.main(["--config", _write_config(tmp_path, token="")])

    assert code == 1
    entry = read_latest_ledger_entry(tmp_path / "state" / "ingest_ledger.jsonl")
    assert entry is not None
    assert entry["error_code"] == "auth"
    assert not (tmp_path / "out" / "incidents.geojson").exists()


def test_print_schema_outputs_json_and_skips_run(monkeypatch, tmp_path, capsys) -> None:
    _quiet(monkeypatch)

    def unexpected_run_once(*args, **kwargs):  # pragma: no cover - must not be called
        raise AssertionError("run_once should not be called")

    monkeypatch.setattr(fetch_incidents, "run_once", unexpected_run_once)

    assert fetch_incidents.main(["--config", _write_config(tmp_path), "--print-schema", "input"]) == 0
    schema = json.loads(capsys.readouterr().out)
    assert "token" in schema["properties"]

    assert fetch_incidents.main(["--config", _write_config(tmp_path), "--print-schema", "output", "--profile", "minimal"]) == 0
    schema = json.loads(capsys.readouterr().out)
    assert "routeName" not in schema["properties"]


def test_apply_overrides_sets_layer_flags() -> None:
    args = fetch_incidents.parse_args(
        ["--token", "cli-token", "--no-point", "--no-linestring", "--profile", "minimal", "--verbose"]
    )

    layer = fetch_incidents.apply_overrides(AppConfig(), args).layer

    assert layer.token == "cli-token"
    assert (layer.allow_point, layer.allow_linestring, layer.allow_polygon) == (False, False, True)
    assert layer.profile == "minimal"
    assert layer.verbose is True


def test_apply_overrides_without_flags_keeps_config() -> None:
    config = AppConfig()

    assert fetch_incidents.apply_overrides(config, fetch_incidents.parse_args([])) is config
