"""Streaming generation benchmark: first-token latency and tokens/second."""

import asyncio
import enum
import json
import logging
import time
from collections.abc import Callable

import httpx

from llamaprobe.models import BenchmarkSample, BenchStatus

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate"

Clock = Callable[[], float]


class StreamPhase(enum.Enum):
    AWAITING_FIRST_TOKEN = "awaiting_first_token"
    STREAMING = "streaming"
    DONE = "done"


class StreamMeter:
    """Consumes NDJSON lines from a generate stream and times them.

    Latency runs from start() to the first non-empty fragment; the token rate
    covers first fragment to last consumed line, so the wait before the first
    token never dilutes it.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self.phase = StreamPhase.AWAITING_FIRST_TOKEN
        self.token_count = 0
        self._t0: float | None = None
        self._t_first: float | None = None
        self._t_last: float | None = None

    def start(self) -> None:
        self._t0 = self._clock()

    def feed(self, line: str) -> StreamPhase:
        """Account for one line of the stream and return the new phase."""
        if self.phase is StreamPhase.DONE or not line.strip():
            return self.phase

        now = self._clock()
        if self._t0 is None:
            self._t0 = now
        self._t_last = now

        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            # Malformed line from the server; still counts as activity
            return self.phase
        if not isinstance(event, dict):
            return self.phase

        fragment = event.get("response")
        if isinstance(fragment, str) and fragment:
            if self.phase is StreamPhase.AWAITING_FIRST_TOKEN:
                self._t_first = now
                self.phase = StreamPhase.STREAMING
            self.token_count += 1

        if event.get("done") is True:
            self.phase = StreamPhase.DONE
        return self.phase

    @property
    def received_data(self) -> bool:
        return self._t_last is not None

    @property
    def first_token_latency(self) -> float:
        if self._t_first is None or self._t0 is None:
            return 0.0
        return max(self._t_first - self._t0, 0.0)

    @property
    def elapsed(self) -> float:
        if self._t_first is None or self._t_last is None:
            return 0.0
        return max(self._t_last - self._t_first, 0.0)

    def sample(self, status: BenchStatus | None = None) -> BenchmarkSample:
        """Build the sample. An explicit status (e.g. TIMEOUT) overrides the derived one."""
        latency = self.first_token_latency
        elapsed = self.elapsed
        tps = self.token_count / elapsed if self.token_count and elapsed > 0 else 0.0

        if status is None:
            if self.token_count == 0:
                return BenchmarkSample(status=BenchStatus.NO_RESPONSE)
            if elapsed == 0:
                return BenchmarkSample(
                    status=BenchStatus.ZERO_INTERVAL,
                    first_token_latency=latency,
                    token_count=self.token_count,
                )
            status = BenchStatus.SUCCESS

        return BenchmarkSample(
            status=status,
            first_token_latency=latency,
            tokens_per_second=tps,
            token_count=self.token_count,
        )


async def benchmark_model(
    client: httpx.AsyncClient,
    base_url: str,
    model: str,
    prompt: str,
    timeout: float,
    cancel: asyncio.Event | None = None,
    clock: Clock = time.monotonic,
) -> BenchmarkSample:
    """POST a streaming generate request for model and measure the response."""
    meter = StreamMeter(clock)
    try:
        return await asyncio.wait_for(
            _stream_generate(client, base_url, model, prompt, timeout, meter, cancel),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.debug("Benchmark of %s on %s timed out after %.1fs", model, base_url, timeout)
        return meter.sample(BenchStatus.TIMEOUT)


async def _stream_generate(
    client: httpx.AsyncClient,
    base_url: str,
    model: str,
    prompt: str,
    timeout: float,
    meter: StreamMeter,
    cancel: asyncio.Event | None,
) -> BenchmarkSample:
    payload = {"model": model, "prompt": prompt, "stream": True}

    meter.start()
    try:
        async with client.stream(
            "POST", f"{base_url}{GENERATE_PATH}", json=payload, timeout=timeout
        ) as resp:
            if not resp.is_success:
                return BenchmarkSample(status=BenchStatus.HTTP_ERROR, http_status=resp.status_code)

            async for line in resp.aiter_lines():
                if cancel is not None and cancel.is_set():
                    return BenchmarkSample.skipped()
                if meter.feed(line) is StreamPhase.DONE:
                    break

    except (httpx.ConnectError, httpx.ConnectTimeout) as e:
        logger.debug("Could not connect to %s for %s: %s", base_url, model, e)
        return BenchmarkSample(status=BenchStatus.CONNECTION_FAILED)

    except httpx.TimeoutException:
        # a single read stalled past the timeout
        return meter.sample(BenchStatus.TIMEOUT)

    except httpx.RequestError as e:
        # transport drops and undecodable bodies alike
        if not meter.received_data:
            logger.debug("Request to %s failed before any data: %s", base_url, e)
            return BenchmarkSample(status=BenchStatus.CONNECTION_FAILED)
        logger.debug("Stream from %s for %s broke off: %s", base_url, model, e)
        return meter.sample(BenchStatus.CONNECTION_FAILED)

    return meter.sample()
