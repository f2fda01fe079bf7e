"""Tests for Prometheus metrics."""
import pytest
from httpx import AsyncClient, ASGITransport
from prometheus_client import CollectorRegistry
from telemetry_ingest.main import app, metrics
from telemetry_ingest.metrics import Metrics


def test_outcome_counter():
    m = Metrics(registry=CollectorRegistry())

    m.record_outcome("insert", 3)
    m.record_outcome("insert")
    m.record_outcome("dedupe", 0)

    assert m.registry.get_sample_value("ingest_events_total", {"outcome": "insert"}) == 4
    assert m.registry.get_sample_value("ingest_events_total", {"outcome": "dedupe"}) is None


def test_batch_histograms():
    m = Metrics(registry=CollectorRegistry())

    m.record_batch(1000, 0.25)
    m.record_batch(10, 0.01)

    assert m.registry.get_sample_value("ingest_batch_size_count") == 2
    assert m.registry.get_sample_value("ingest_batch_size_sum") == 1010
    assert m.registry.get_sample_value("ingest_batch_duration_seconds_sum") == pytest.approx(0.26)


def test_write_error_and_round_trip_counters():
    m = Metrics(registry=CollectorRegistry())

    m.record_write_error("DUPLICATE_KEY")
    m.record_round_trip("find_by_ids")
    m.record_round_trip("bulk_write")

    assert m.registry.get_sample_value("ingest_write_errors_total", {"code": "DUPLICATE_KEY"}) == 1
    assert m.registry.get_sample_value("ingest_store_round_trips_total", {"operation": "bulk_write"}) == 1


def test_app_info_and_up():
    m = Metrics(service_name="svc", version="9.9.9", registry=CollectorRegistry())

    assert m.registry.get_sample_value("app_up", {"service": "svc", "version": "9.9.9"}) == 1
    assert m.registry.get_sample_value("app_info", {"service": "svc", "version": "9.9.9"}) == 1


def test_process_metrics_sampled():
    m = Metrics(registry=CollectorRegistry())
    m.update_system_metrics()

    rss = m.registry.get_sample_value("process_resident_memory_bytes", {"service": m.service_name})
    assert rss and rss > 0


@pytest.mark.asyncio
async def test_batch_request_updates_app_metrics():
    """Ingesting through the API feeds the app-wide registry."""
    before = metrics.registry.get_sample_value("ingest_events_total", {"outcome": "insert"}) or 0

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        await client.post(
            "/v1/events/batch",
            json=[{"eventId": "MET-1", "machineId": "M1", "eventTime": "2026-01-01T00:00:00Z"}],
        )

    after = metrics.registry.get_sample_value("ingest_events_total", {"outcome": "insert"})
    assert after == before + 1

    requests = metrics.registry.get_sample_value(
        "http_requests_total",
        {"service": "telemetry-ingest", "method": "POST", "path": "/v1/events/batch", "status": "200"},
    )
    assert requests and requests >= 1
