from click.testing import CliRunner

import llamaprobe.cli
from llamaprobe.cli import main


def capture_run(monkeypatch, code=0):
    seen = {}

    async def fake_run_scan(config, renderer):
        seen["config"] = config
        return code

    monkeypatch.setattr(llamaprobe.cli, "run_scan", fake_run_scan)
    return seen


def test_options_reach_the_scan(monkeypatch, tmp_path):
    seen = capture_run(monkeypatch)
    result = CliRunner().invoke(main, [
        "--input", str(tmp_path / "ip.txt"),
        "--output", str(tmp_path / "out.csv"),
        "--workers", "5",
        "--no-bench",
        "--sort-by-size",
        "--config", str(_write_config(tmp_path, "port = 8080\n")),
    ])

    assert result.exit_code == 0, result.output
    config = seen["config"]
    assert config.port == 8080
    assert config.max_workers == 5
    assert config.disable_bench is True
    assert config.sort_by_size is True


def test_unset_flags_leave_config_file_values(monkeypatch, tmp_path):
    seen = capture_run(monkeypatch)
    path = _write_config(tmp_path, "disable_bench = true\n")
    result = CliRunner().invoke(main, ["--config", str(path)])
    assert result.exit_code == 0, result.output
    assert seen["config"].disable_bench is True


def test_invalid_config_exits_1(monkeypatch):
    seen = capture_run(monkeypatch)
    result = CliRunner().invoke(main, ["--port", "0"])
    assert result.exit_code == 1
    assert "invalid port number" in result.output
    assert "config" not in seen


def test_scan_exit_code_is_propagated(monkeypatch):
    capture_run(monkeypatch, code=130)
    result = CliRunner().invoke(main, [])
    assert result.exit_code == 130


def _write_config(tmp_path, text):
    path = tmp_path / "config.toml"
    path.write_text(text)
    return path


def test_wrongly_typed_config_value_exits_1(monkeypatch, tmp_path):
    seen = capture_run(monkeypatch)
    result = CliRunner().invoke(main, ["--config", str(_write_config(tmp_path, 'port = "x"\n'))])
    assert result.exit_code == 1
    assert "Configuration error" in result.output
    assert "config" not in seen
