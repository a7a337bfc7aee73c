"""Tests for configuration loading."""
import pytest
from config import ZoneEngineConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("RAINZONE_GRID_STEP", "RAINZONE_ZOOM", "RAINZONE_ZONE_TTL_SECONDS", "RAINZONE_NWS_USER_AGENT"):
        monkeypatch.delenv(name, raising=False)
    # keep load_dotenv from finding a stray .env up the tree
    monkeypatch.chdir(tmp_path)


def test_defaults():
    config = load_config(env_file="missing.env")

    assert config == ZoneEngineConfig()
    assert config.precision == 1


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("RAINZONE_GRID_STEP", "0.01")
    monkeypatch.setenv("RAINZONE_ZOOM", "8")
    monkeypatch.setenv("RAINZONE_ZONE_TTL_SECONDS", "600")

    config = load_config(env_file="missing.env")

    assert config.grid_step == 0.01
    assert config.zoom == 8
    assert config.zone_ttl_seconds == 600.0
    assert config.precision == 2


def test_env_file(tmp_path, monkeypatch):
    env_file = tmp_path / "engine.env"
    env_file.write_text("RAINZONE_NWS_USER_AGENT=(rainzone, ops@example.com)\n")
    monkeypatch.delenv("RAINZONE_NWS_USER_AGENT", raising=False)

    config = load_config(env_file=str(env_file))

    assert config.nws_user_agent == "(rainzone, ops@example.com)"


@pytest.mark.parametrize("name, value", [
    ("RAINZONE_ZOOM", "six"),
    ("RAINZONE_GRID_STEP", "-0.2"),
])
def test_bad_values_exit(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(SystemExit):
        load_config(env_file="missing.env")
