"""Probe outcomes, benchmark samples, and per-host records."""

import enum
import re
from dataclasses import dataclass, field


class ProbeOutcome(enum.Enum):
    """Result of the port and service checks for one candidate."""

    PORT_CLOSED = "port_closed"
    SERVICE_ABSENT = "service_absent"
    SERVICE_OK = "service_ok"


class BenchStatus(enum.Enum):
    SUCCESS = "Success"
    AVAILABLE = "Available"  # benchmarking disabled, model listed only
    CONNECTION_FAILED = "Connection failed"
    HTTP_ERROR = "HTTP error"
    NO_RESPONSE = "No response data"
    ZERO_INTERVAL = "Zero time interval"
    TIMEOUT = "Timeout"
    SKIPPED = "Skipped"


# "llama3:70b", "qwen2.5:1.5b-instruct", "all-minilm:33m"
_SIZE_RE = re.compile(r"(?<![\w.])(\d+(?:\.\d+)?)([kmbt])(?![a-z])", re.IGNORECASE)
_SIZE_UNITS = {"k": 10**3, "m": 10**6, "b": 10**9, "t": 10**12}


def parse_model_size(name: str) -> int | None:
    """Parameter count encoded in a model tag, e.g. 8_000_000_000 for 'llama3:8b'."""
    match = _SIZE_RE.search(name.rpartition(":")[2]) or _SIZE_RE.search(name)
    if not match:
        return None
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[unit.lower()])


@dataclass(frozen=True)
class ModelDescriptor:
    name: str
    size: int | None = None

    @classmethod
    def from_name(cls, name: str) -> "ModelDescriptor":
        return cls(name=name, size=parse_model_size(name))


@dataclass(frozen=True)
class BenchmarkSample:
    """Outcome of benchmarking one model on one host. Latency is in seconds."""

    status: BenchStatus
    first_token_latency: float = 0.0
    tokens_per_second: float = 0.0
    token_count: int = 0
    http_status: int | None = None

    @property
    def label(self) -> str:
        if self.status is BenchStatus.HTTP_ERROR:
            return f"HTTP {self.http_status}"
        return self.status.value

    @property
    def first_token_ms(self) -> float:
        return self.first_token_latency * 1000

    @classmethod
    def available(cls) -> "BenchmarkSample":
        return cls(status=BenchStatus.AVAILABLE)

    @classmethod
    def skipped(cls) -> "BenchmarkSample":
        return cls(status=BenchStatus.SKIPPED)


@dataclass
class HostRecord:
    """One responsive host and the per-model results gathered for it."""

    address: str
    port: int
    results: list[tuple[ModelDescriptor, BenchmarkSample]] = field(default_factory=list)

    @property
    def models(self) -> list[ModelDescriptor]:
        return [model for model, _ in self.results]

    @property
    def status(self) -> BenchStatus:
        """SUCCESS/AVAILABLE if any model got there, else the first model's status."""
        if not self.results:
            return BenchStatus.NO_RESPONSE
        for _, sample in self.results:
            if sample.status in (BenchStatus.SUCCESS, BenchStatus.AVAILABLE):
                return sample.status
        return self.results[0][1].status
