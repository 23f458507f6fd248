"""Entry point: click CLI, config resolution, scan launch."""

import asyncio
from pathlib import Path

import click

from llamaprobe.config import SERVICE_CHECK_MODES, ScanConfig, load_config
from llamaprobe.errors import ConfigError
from llamaprobe.lifecycle import EXIT_ERROR
from llamaprobe.render import ScanRenderer, render_error, setup_logging
from llamaprobe.runner import run_scan


@click.command()
@click.option("--port", default=None, type=int, help="Service port to probe (default: 11434).")
@click.option("--input", "input_file", default=None, type=click.Path(path_type=Path), help="Candidate address list, one IP per line (default: ip.txt).")
@click.option("--output", "output_file", default=None, type=click.Path(path_type=Path), help="CSV file for results (default: results.csv).")
@click.option("--targets", "targets_file", default=None, type=click.Path(exists=True, path_type=Path), help="Address ranges for zmap; runs the sweep and writes live hosts to --input.")
@click.option("--bandwidth", default=None, help="zmap bandwidth cap, e.g. 30M.")
@click.option("--rate", default=None, type=int, help="zmap packets per second.")
@click.option("--timeout", default=None, type=float, help="Seconds allowed for each connect and probe request (default: 3).")
@click.option("--idle-conn-timeout", default=None, type=float, help="Seconds to keep idle HTTP connections (default: 90).")
@click.option("--workers", "max_workers", default=None, type=int, help="Maximum hosts probed at once (default: 10 x CPUs).")
@click.option("--max-idle-conns", default=None, type=int, help="Idle HTTP connections kept for reuse (default: 2 x CPUs).")
@click.option("--no-bench", "disable_bench", is_flag=True, help="Only list models, skip the generation benchmark.")
@click.option("--prompt", "bench_prompt", default=None, help="Prompt sent for the benchmark.")
@click.option("--bench-timeout", default=None, type=float, help="Seconds allowed per model benchmark (default: 30).")
@click.option("--service-check", default=None, type=click.Choice(SERVICE_CHECK_MODES), help="How to confirm the service: root banner or non-empty catalog.")
@click.option("--sort-by-size", is_flag=True, help="Order models by parameter count instead of name.")
@click.option("--port-scan-only", is_flag=True, help="Run the zmap sweep and stop.")
@click.option("--deadline", default=None, type=float, help="Stop the scan after this many seconds.")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, path_type=Path), help="Path to config file (default: ~/.config/llamaprobe/config.toml).")
@click.option("--quiet", is_flag=True, help="Only print the summary.")
@click.option("--verbose", "-v", is_flag=True, help="Log per-host failures.")
def main(config_path: Path | None, quiet: bool, verbose: bool, **options) -> None:
    """Find Ollama servers in an address list, list their models, and time them."""
    setup_logging(verbose)

    # An unset flag must not override the config file
    for flag in ("disable_bench", "sort_by_size", "port_scan_only"):
        options[flag] = options[flag] or None

    try:
        cfg = load_config(config_path)
        config = ScanConfig.from_sources(options, cfg)
        config.validate()
    except ConfigError as e:
        render_error(f"Configuration error: {e}")
        raise SystemExit(EXIT_ERROR)

    renderer = ScanRenderer(benchmark=not config.disable_bench, quiet=quiet)
    raise SystemExit(asyncio.run(run_scan(config, renderer)))


if __name__ == "__main__":
    main()
