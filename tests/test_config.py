from config import DEFAULT_CONFIG, load_config


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    config = load_config(str(tmp_path / "missing.yaml"))
    assert config == DEFAULT_CONFIG
    assert config is not DEFAULT_CONFIG


def test_file_is_merged_over_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    path = tmp_path / "station.yaml"
    path.write_text("simulation:\n  tick_interval: 0.5\nserver:\n  port: 8080\n", encoding="utf-8")
    config = load_config(str(path))
    assert config["simulation"]["tick_interval"] == 0.5
    assert config["simulation"]["cycle_duration"] == DEFAULT_CONFIG["simulation"]["cycle_duration"]
    assert config["server"] == {"host": "0.0.0.0", "port": 8080}


def test_broken_yaml_falls_back(tmp_path, monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    path = tmp_path / "station.yaml"
    path.write_text("simulation: [unclosed\n", encoding="utf-8")
    assert load_config(str(path)) == DEFAULT_CONFIG


def test_port_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("PORT", "9123")
    assert load_config(str(tmp_path / "missing.yaml"))["server"]["port"] == 9123
    monkeypatch.setenv("PORT", "http")
    assert load_config(str(tmp_path / "missing.yaml"))["server"]["port"] == 5000


def test_shipped_station_yaml_loads(monkeypatch):
    from tests.conftest import REPO_ROOT

    monkeypatch.delenv("PORT", raising=False)
    config = load_config(str(REPO_ROOT / "station.yaml"))
    assert config["scheduler"]["schedules"][0]["id"] == "morning"
    assert config["scheduler"]["enabled"] is False
