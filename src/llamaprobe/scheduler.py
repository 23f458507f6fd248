"""Bounded-concurrency scheduling of per-host probe pipelines."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

import httpx

from llamaprobe.bench import benchmark_model
from llamaprobe.config import ScanConfig
from llamaprobe.models import BenchmarkSample, HostRecord, ProbeOutcome
from llamaprobe.probe import address_url, check_port, check_service, fetch_models

logger = logging.getLogger(__name__)

InspectFn = Callable[[str], Awaitable[HostRecord | None]]
ProgressFn = Callable[[int, int], None]


class HostInspector:
    """Drives one address through port -> service -> catalog -> benchmark."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: ScanConfig,
        cancel: asyncio.Event,
    ) -> None:
        self._client = client
        self._config = config
        self._cancel = cancel

    async def probe(self, address: str) -> ProbeOutcome:
        if not await check_port(address, self._config.port, self._config.timeout):
            return ProbeOutcome.PORT_CLOSED
        if self._cancel.is_set():
            return ProbeOutcome.SERVICE_ABSENT
        base_url = address_url(address, self._config.port)
        return await check_service(
            self._client, base_url, self._config.service_check, timeout=self._config.timeout
        )

    async def inspect(self, address: str) -> HostRecord | None:
        """Return the host's record, or None if there is nothing to report.

        None covers a closed port, a missing service, an empty catalog, and
        cancellation anywhere along the way.
        """
        outcome = await self.probe(address)
        if outcome is not ProbeOutcome.SERVICE_OK or self._cancel.is_set():
            logger.debug("%s: %s", address, outcome.value)
            return None

        base_url = address_url(address, self._config.port)
        models = await fetch_models(
            self._client, base_url, self._config.sort_by_size, timeout=self._config.timeout
        )
        if not models or self._cancel.is_set():
            logger.debug("%s: no usable models", address)
            return None

        record = HostRecord(address=address, port=self._config.port)
        if self._config.disable_bench:
            record.results = [(model, BenchmarkSample.available()) for model in models]
            return record

        for model in models:
            if self._cancel.is_set():
                return None
            sample = await benchmark_model(
                self._client,
                base_url,
                model.name,
                self._config.bench_prompt,
                self._config.bench_timeout,
                cancel=self._cancel,
            )
            record.results.append((model, sample))

        if self._cancel.is_set():
            return None
        return record


class Scheduler:
    """Runs an inspect function over candidates with at most `workers` in flight.

    A slot is taken from the admission gate before each task is created, so
    the number of live tasks never exceeds `workers`.
    """

    def __init__(
        self,
        inspect: InspectFn,
        workers: int,
        cancel: asyncio.Event,
        on_progress: ProgressFn | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._inspect = inspect
        self._gate = asyncio.Semaphore(workers)
        self._cancel = cancel
        self._on_progress = on_progress
        self.workers = workers
        self.in_flight = 0
        self.peak_in_flight = 0
        self.completed = 0
        self.emitted = 0

    async def run(self, candidates: Iterable[str], queue: asyncio.Queue) -> None:
        """Inspect every candidate, putting each non-empty record on queue.

        A None sentinel always follows the last record, even on cancellation.
        """
        pending = list(candidates)
        total = len(pending)
        tasks: set[asyncio.Task] = set()
        try:
            for address in pending:
                if not await self._admit():
                    break
                task = asyncio.create_task(self._run_one(address, queue, total))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
            if tasks:
                await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            queue.put_nowait(None)

    async def _admit(self) -> bool:
        """Wait for a free slot. False once cancellation has been requested."""
        if self._cancel.is_set():
            return False
        acquire = asyncio.ensure_future(self._gate.acquire())
        cancelled = asyncio.ensure_future(self._cancel.wait())
        try:
            await asyncio.wait({acquire, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            acquire.cancel()
            raise
        finally:
            cancelled.cancel()
        if self._cancel.is_set():
            if acquire.done() and not acquire.cancelled():
                self._gate.release()
            else:
                acquire.cancel()
            return False
        return True

    async def _run_one(self, address: str, queue: asyncio.Queue, total: int) -> None:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            record = await self._inspect(address)
        except Exception:
            # A bug in one pipeline must not take down its siblings
            logger.exception("Unexpected error while probing %s", address)
            record = None
        finally:
            self.in_flight -= 1
            self._gate.release()

        self.completed += 1
        if record is not None and record.results and not self._cancel.is_set():
            self.emitted += 1
            await queue.put(record)
        if self._on_progress:
            self._on_progress(self.completed, total)
