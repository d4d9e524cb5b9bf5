import os
import pytest
import yaml
from pathlib import Path
from foundry.config import ConfigError, FoundryConfig, get_foundry_home, load_config

def test_get_foundry_home_default(monkeypatch):
    monkeypatch.delenv("FOUNDRY_HOME", raising=False)
    home = get_foundry_home()
    assert home == Path("~/.config/foundry").expanduser()

def test_get_foundry_home_env_var(monkeypatch, tmp_path):
    custom_home = tmp_path / "custom_home"
    monkeypatch.setenv("FOUNDRY_HOME", str(custom_home))
    assert get_foundry_home() == custom_home

def test_load_config_missing_file(monkeypatch, tmp_path):
    monkeypatch.setenv("FOUNDRY_HOME", str(tmp_path))
    with pytest.raises(FileNotFoundError, match="foundry config.yaml not found"):
        load_config()

def test_load_config_valid(monkeypatch, tmp_path):
    monkeypatch.setenv("FOUNDRY_HOME", str(tmp_path))
    config_path = tmp_path / "config.yaml"

    config_data = {
        "max_steps": 25,
        "timeout_s": 30,
        "trace": False,
        "log_format": "structured",
    }
    config_path.write_text(yaml.dump(config_data))

    cfg = load_config()
    assert isinstance(cfg, FoundryConfig)
    assert cfg.max_steps == 25
    assert cfg.timeout_s == 30
    assert cfg.trace is False
    assert cfg.log_level == "INFO"

def test_load_config_explicit_path(tmp_path):
    config_path = tmp_path / "engine.yaml"
    config_path.write_text("max_steps: 3\n")
    assert load_config(config_path).max_steps == 3

def test_load_config_empty_file_uses_defaults(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("")
    assert load_config(config_path) == FoundryConfig()

def test_load_config_with_env_file(monkeypatch, tmp_path):
    monkeypatch.setenv("FOUNDRY_HOME", str(tmp_path))
    config_path = tmp_path / "config.yaml"
    env_file = tmp_path / ".env.test"

    env_file.write_text("FOUNDRY_TEST_VAR=loaded_from_env")

    config_path.write_text(yaml.dump({"env_file": str(env_file)}))

    # Pre-clean env var
    monkeypatch.delenv("FOUNDRY_TEST_VAR", raising=False)

    load_config()
    assert os.environ.get("FOUNDRY_TEST_VAR") == "loaded_from_env"

def test_load_config_invalid_yaml(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("max_steps: [unclosed\n")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(config_path)

def test_load_config_not_a_mapping(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- max_steps\n")
    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config(config_path)

def test_load_config_unknown_key(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("max_stepz: 3\n")
    with pytest.raises(ConfigError, match="Unknown config keys"):
        load_config(config_path)

@pytest.mark.parametrize("kwargs", [
    {"max_steps": 0},
    {"max_steps": True},
    {"max_steps": "10"},
    {"timeout_s": -1},
    {"log_format": "xml"},
    {"log_level": "LOUD"},
])
def test_config_rejects_invalid_values(kwargs):
    with pytest.raises(ConfigError):
        FoundryConfig(**kwargs)

def test_config_round_trip():
    cfg = FoundryConfig(max_steps=50, timeout_s=2.5, log_file="/tmp/foundry.log")
    assert FoundryConfig.from_dict(cfg.to_dict()) == cfg
