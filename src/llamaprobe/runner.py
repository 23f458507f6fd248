"""Assemble and run a full scan: sweep, probe, benchmark, persist."""

import asyncio
import logging

import httpx

from llamaprobe.candidates import read_candidates
from llamaprobe.config import ScanConfig
from llamaprobe.errors import LlamaprobeError, SinkError
from llamaprobe.lifecycle import EXIT_ERROR, CancellationController
from llamaprobe.render import ScanRenderer, render_error
from llamaprobe.scheduler import HostInspector, Scheduler
from llamaprobe.sink import ResultSink, drain
from llamaprobe.sweep import run_sweep

logger = logging.getLogger(__name__)


def build_client(config: ScanConfig) -> httpx.AsyncClient:
    """Shared HTTP client. Every request is bounded by the probe timeout unless overridden."""
    limits = httpx.Limits(
        max_connections=config.max_workers,
        max_keepalive_connections=config.max_idle_conns,
        keepalive_expiry=config.idle_conn_timeout,
    )
    return httpx.AsyncClient(timeout=config.timeout, limits=limits)


async def run_scan(
    config: ScanConfig,
    renderer: ScanRenderer | None = None,
    client: httpx.AsyncClient | None = None,
    controller: CancellationController | None = None,
) -> int:
    """Run a scan end to end and return the process exit code."""
    renderer = renderer or ScanRenderer(benchmark=not config.disable_bench)
    controller = controller or CancellationController(config.deadline)

    # Open the output first so an unwritable path fails before any work starts.
    # The sweep writes input_file, which must not be the results file.
    try:
        sink = None if config.port_scan_only else ResultSink(config.output_file, not config.disable_bench)
    except SinkError as e:
        render_error(str(e))
        return EXIT_ERROR

    try:
        async with controller:
            return await _run(config, renderer, client, controller, sink)
    except LlamaprobeError as e:
        render_error(str(e))
        return EXIT_ERROR
    finally:
        if sink is not None:
            sink.close()


async def _run(
    config: ScanConfig,
    renderer: ScanRenderer,
    client: httpx.AsyncClient | None,
    controller: CancellationController,
    sink: ResultSink | None,
) -> int:
    if config.targets_file is not None:
        renderer.stage("First stage: Port sweep")
        sweep = asyncio.create_task(run_sweep(config))
        stop = asyncio.create_task(controller.token.wait())
        await asyncio.wait({sweep, stop}, return_when=asyncio.FIRST_COMPLETED)
        stop.cancel()
        if not sweep.done():
            sweep.cancel()
            await asyncio.gather(sweep, return_exceptions=True)
            return controller.exit_code
        sweep.result()

    if sink is None:
        # port_scan_only: the sweep's address list is the result
        return controller.exit_code

    try:
        candidates = read_candidates(config.input_file)
    except OSError as e:
        render_error(f"failed to open result file {config.input_file}: {e}")
        return EXIT_ERROR

    renderer.stage(f"Second stage: Service detection ({len(candidates)} candidates)")

    owns_client = client is None
    client = client or build_client(config)
    inspector = HostInspector(client, config, controller.token)
    scheduler = Scheduler(
        inspector.inspect,
        config.max_workers,
        controller.token,
        on_progress=renderer.advance,
    )
    queue: asyncio.Queue = asyncio.Queue()

    renderer.start(len(candidates))
    consumer = asyncio.create_task(drain(queue, sink, renderer))
    producer = asyncio.create_task(scheduler.run(candidates, queue))
    try:
        hosts, _ = await asyncio.gather(consumer, producer)
    finally:
        # a failed write stops the producers too
        for task in (consumer, producer):
            task.cancel()
        await asyncio.gather(consumer, producer, return_exceptions=True)
        renderer.stop()
        if owns_client:
            await client.aclose()

    sink.close()
    renderer.summary(hosts, sink.rows_written, config.output_file, interrupted=controller.cancelled)
    logger.debug(
        "Probed %d of %d candidates, peak concurrency %d",
        scheduler.completed, len(candidates), scheduler.peak_in_flight,
    )
    return controller.exit_code
