"""CSV persistence for host records, and the single consumer that feeds it."""

import asyncio
import csv
import logging
from pathlib import Path

from llamaprobe.errors import SinkError
from llamaprobe.models import HostRecord

logger = logging.getLogger(__name__)

BENCH_HEADER = ["IP address", "Port", "Model name", "Status", "First token delay (ms)", "Tokens/s"]
LIST_HEADER = ["IP address", "Model name", "Status"]


class ResultSink:
    """Append-only CSV of per-model results.

    The header is written once when the file is opened. Rows for a host are
    written together and flushed before returning, so an interrupted run
    leaves only whole hosts behind.
    """

    def __init__(self, path: Path, benchmark: bool = True) -> None:
        self.path = path
        self.benchmark = benchmark
        self.rows_written = 0
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "w", newline="", encoding="utf-8")
        except OSError as e:
            raise SinkError(f"failed to create {self.path}: {e}") from e
        self._writer = csv.writer(self._file)
        self._write_rows([self.header])

    @property
    def header(self) -> list[str]:
        return BENCH_HEADER if self.benchmark else LIST_HEADER

    @property
    def closed(self) -> bool:
        return self._file.closed

    def rows_for(self, record: HostRecord) -> list[list[str]]:
        rows = []
        for model, sample in record.results:
            if self.benchmark:
                rows.append([
                    record.address,
                    str(record.port),
                    model.name,
                    sample.label,
                    f"{sample.first_token_ms:.0f}",
                    f"{sample.tokens_per_second:.1f}",
                ])
            else:
                rows.append([record.address, model.name, sample.label])
        return rows

    def write(self, record: HostRecord) -> None:
        if self.closed:
            raise SinkError(f"{self.path} is already closed")
        rows = self.rows_for(record)
        self._write_rows(rows)
        self.rows_written += len(rows)
        logger.debug("Wrote %d rows for %s", len(rows), record.address)

    def _write_rows(self, rows: list[list[str]]) -> None:
        try:
            self._writer.writerows(rows)
            self._file.flush()
        except OSError as e:
            raise SinkError(f"failed to write {self.path}: {e}") from e

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._file.flush()
        finally:
            self._file.close()


async def drain(queue: asyncio.Queue, sink: ResultSink, renderer=None) -> int:
    """Consume records until the None sentinel, rendering and persisting each. Returns hosts written."""
    hosts = 0
    while True:
        record = await queue.get()
        try:
            if record is None:
                return hosts
            if renderer is not None:
                renderer.host(record)
            sink.write(record)
            hosts += 1
        finally:
            queue.task_done()
