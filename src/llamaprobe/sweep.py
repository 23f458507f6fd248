"""Run the external zmap sweep that produces the candidate address list."""

import asyncio
import logging
import shutil

from llamaprobe.config import ScanConfig
from llamaprobe.errors import SweepError

logger = logging.getLogger(__name__)

SWEEP_BINARY = "zmap"


def build_sweep_command(config: ScanConfig, binary: str = SWEEP_BINARY) -> list[str]:
    """zmap argv: probe config.port across targets_file, write live addresses to input_file."""
    if config.targets_file is None:
        raise SweepError("no targets file configured for the sweep")
    return [
        binary,
        "-p", str(config.port),
        "-w", str(config.targets_file),
        "-o", str(config.input_file),
        "-B", config.bandwidth,
        "--rate", str(config.rate),
    ]


def check_sweep_binary(binary: str = SWEEP_BINARY) -> str:
    """Return the binary's full path, or raise SweepError if it isn't installed."""
    path = shutil.which(binary)
    if path is None:
        raise SweepError(f"{binary} not found on PATH. Install it (e.g. apt install {binary}) and retry.")
    return path


async def run_sweep(config: ScanConfig, binary: str = SWEEP_BINARY) -> None:
    """Run the sweep to completion. Its output goes straight to the terminal."""
    args = build_sweep_command(config, check_sweep_binary(binary))
    logger.info("Executing command: %s", " ".join(args))

    try:
        proc = await asyncio.create_subprocess_exec(*args)
    except OSError as e:
        raise SweepError(f"could not start {binary}: {e}") from e

    try:
        returncode = await proc.wait()
    except asyncio.CancelledError:
        proc.terminate()
        await proc.wait()
        raise

    if returncode != 0:
        raise SweepError(f"{binary} exited with status {returncode}")
