import pytest

from llamaprobe.models import (
    BenchmarkSample,
    BenchStatus,
    HostRecord,
    ModelDescriptor,
    parse_model_size,
)


@pytest.mark.parametrize(
    "name,size",
    [
        ("llama3:8b", 8_000_000_000),
        ("llama3:70b", 70_000_000_000),
        ("qwen2.5:1.5b-instruct", 1_500_000_000),
        ("all-minilm:33m", 33_000_000),
        ("mistral:7b-instruct-q4_0", 7_000_000_000),
        ("llama3:latest", None),
        ("bge-m3", None),
        ("nomic-embed-text", None),
    ],
)
def test_parse_model_size(name, size):
    assert parse_model_size(name) == size


def test_descriptor_from_name():
    assert ModelDescriptor.from_name("llama3:8b") == ModelDescriptor("llama3:8b", 8_000_000_000)


@pytest.mark.parametrize(
    "sample,label",
    [
        (BenchmarkSample(BenchStatus.SUCCESS), "Success"),
        (BenchmarkSample.available(), "Available"),
        (BenchmarkSample(BenchStatus.HTTP_ERROR, http_status=503), "HTTP 503"),
        (BenchmarkSample(BenchStatus.CONNECTION_FAILED), "Connection failed"),
        (BenchmarkSample(BenchStatus.NO_RESPONSE), "No response data"),
        (BenchmarkSample(BenchStatus.ZERO_INTERVAL), "Zero time interval"),
        (BenchmarkSample.skipped(), "Skipped"),
    ],
)
def test_sample_labels(sample, label):
    assert sample.label == label


def test_host_status_prefers_any_success():
    record = HostRecord("10.0.0.1", 11434, [
        (ModelDescriptor("a"), BenchmarkSample(BenchStatus.TIMEOUT)),
        (ModelDescriptor("b"), BenchmarkSample(BenchStatus.SUCCESS)),
    ])
    assert record.status is BenchStatus.SUCCESS
    assert [m.name for m in record.models] == ["a", "b"]


def test_host_status_falls_back_to_first_failure():
    record = HostRecord("10.0.0.1", 11434, [
        (ModelDescriptor("a"), BenchmarkSample(BenchStatus.HTTP_ERROR, http_status=500)),
        (ModelDescriptor("b"), BenchmarkSample(BenchStatus.TIMEOUT)),
    ])
    assert record.status is BenchStatus.HTTP_ERROR
