from __future__ import annotations

from cotripfeed.ingestion.schemas import input_schema, output_schema
from cotripfeed.settings import AppConfig, load_config


def test_load_config_reads_yaml_and_resolves_paths(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("COTRIP_TOKEN", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "paths:",
                f"  output_dir: {tmp_path / 'out'}",
                "cotrip:",
                "  max_retries: 0",
                "  max_pages: 50",
                "layer:",
                "  token: from-yaml",
                "  allow_polygon: false",
                "  profile: minimal",
            ]
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.layer.token == "from-yaml"
    assert config.layer.allow_point is True
    assert config.layer.allow_polygon is False
    assert config.layer.profile == "minimal"
    assert config.cotrip.max_retries == 0
    assert config.cotrip.max_pages == 50
    assert config.paths.output_dir == tmp_path / "out"
    assert config.paths.state_dir.is_absolute()


def test_environment_token_overrides_yaml(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("COTRIP_TOKEN", "from-env")
    path = tmp_path / "config.yaml"
    path.write_text("layer:\n  token: from-yaml\n", encoding="utf-8")

    assert load_config(path).layer.token == "from-env"


def test_missing_config_falls_back_to_example(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("COTRIP_TOKEN", raising=False)

    config = load_config(tmp_path / "missing.yaml")

    assert config.cotrip.base_url == "https://data.cotrip.org/"
    assert config.cotrip.incidents_endpoint == "/api/v1/incidents"
    assert config.app.timezone == "America/Denver"


def test_defaults_match_layer_contract() -> None:
    layer = AppConfig().layer

    assert layer.token == ""
    assert (layer.allow_point, layer.allow_linestring, layer.allow_polygon) == (True, True, True)
    assert layer.verbose is False
    assert AppConfig().cotrip.max_pages is None


def test_input_schema_describes_layer_settings() -> None:
    properties = input_schema()["properties"]

    assert {"token", "allow_point", "allow_linestring", "allow_polygon", "verbose"} <= set(properties)
    assert properties["allow_point"]["default"] is True


def test_output_schema_follows_profile() -> None:
    full = output_schema("full")
    minimal = output_schema("minimal")

    assert "routeName" in full["properties"]
    assert "startMarker" not in full["required"]
    assert "routeName" not in minimal["properties"]
    assert set(minimal["required"]) == {
        "incident_type",
        "status",
        "startTime",
        "lastUpdated",
        "travelerInformationMessage",
    }


def test_output_schema_allows_null_attributes() -> None:
    route = output_schema("full")["properties"]["routeName"]

    assert {"type": "null"} in route["anyOf"]
