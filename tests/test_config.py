from pathlib import Path

import pytest

from llamaprobe.config import DEFAULTS, ScanConfig, load_config, resolve
from llamaprobe.errors import ConfigError


def test_resolve_precedence():
    assert resolve("cli", "cfg", "default") == "cli"
    assert resolve(None, "cfg", "default") == "cfg"
    assert resolve(None, None, "default") == "default"
    assert resolve(False, True, None) is False


def test_missing_config_file_is_empty(tmp_path):
    assert load_config(tmp_path / "absent.toml") == {}


def test_load_config(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('port = 8080\nbench_prompt = "Hello"\ndisable_bench = true\n')
    assert load_config(path) == {"port": 8080, "bench_prompt": "Hello", "disable_bench": True}


def test_broken_config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("port = = 1")
    with pytest.raises(ConfigError):
        load_config(path)


def test_from_sources_layers_cli_over_file():
    config = ScanConfig.from_sources(
        {"port": 9000, "max_workers": None, "output_file": "out.csv"},
        {"port": 8080, "max_workers": 3, "bench_timeout": 5.0},
    )
    assert config.port == 9000
    assert config.max_workers == 3
    assert config.bench_timeout == 5.0
    assert config.output_file == Path("out.csv")
    assert config.input_file == Path(DEFAULTS["input_file"])
    assert config.targets_file is None


def test_defaults_are_valid():
    config = ScanConfig()
    config.validate()
    assert config.port == 11434
    assert config.max_workers >= 10


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"port": 0}, "port"),
        ({"port": 70000}, "port"),
        ({"rate": 0}, "rate"),
        ({"max_workers": 0}, "max_workers"),
        ({"timeout": 0}, "timeout"),
        ({"bench_timeout": -1}, "bench_timeout"),
        ({"bench_prompt": "  "}, "prompt"),
        ({"service_check": "guess"}, "service_check"),
        ({"deadline": 0}, "deadline"),
        ({"input_file": Path("same.csv"), "output_file": Path("same.csv")}, "differ"),
        ({"port_scan_only": True}, "targets"),
    ],
)
def test_validate_rejects(overrides, message):
    with pytest.raises(ConfigError, match=message):
        ScanConfig(**overrides).validate()


def test_empty_prompt_is_fine_without_benchmark():
    ScanConfig(bench_prompt="", disable_bench=True).validate()


def test_from_sources_coerces_file_values():
    config = ScanConfig.from_sources({}, {"port": "8080", "timeout": 2, "input_file": "hosts.txt"})
    assert config.port == 8080
    assert config.timeout == 2.0 and isinstance(config.timeout, float)
    assert config.input_file == Path("hosts.txt")


@pytest.mark.parametrize(
    "cfg,message",
    [
        ({"port": "x"}, "port"),
        ({"port": 80.5}, "port"),
        ({"max_workers": True}, "max_workers"),
        ({"timeout": "soon"}, "timeout"),
        ({"disable_bench": "yes"}, "disable_bench"),
        ({"bench_prompt": 5}, "bench_prompt"),
        ({"output_file": 42}, "output_file"),
    ],
)
def test_from_sources_rejects_wrong_types(cfg, message):
    with pytest.raises(ConfigError, match=message):
        ScanConfig.from_sources({}, cfg)
