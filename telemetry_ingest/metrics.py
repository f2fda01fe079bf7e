"""
Prometheus metrics for the telemetry ingestion service.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
import psutil
import os

BATCH_SIZE_BUCKETS = (1, 10, 50, 100, 250, 500, 1000, 2500, 5000)


class Metrics:
    """
    Centralized metrics for the ingestion service.
    """

    def __init__(self, service_name: str = "telemetry-ingest", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Business Metrics - ingestion specific
        self.events_total = Counter(
            "ingest_events_total",
            "Events processed, by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.batch_size = Histogram(
            "ingest_batch_size",
            "Events submitted per batch",
            buckets=BATCH_SIZE_BUCKETS,
            registry=self.registry,
        )

        self.batch_duration = Histogram(
            "ingest_batch_duration_seconds",
            "Time to validate, reconcile and write one batch",
            registry=self.registry,
        )

        self.store_round_trips_total = Counter(
            "ingest_store_round_trips_total",
            "Calls made to the event store",
            ["operation"],
            registry=self.registry,
        )

        self.write_errors_total = Counter(
            "ingest_write_errors_total",
            "Per-operation failures reported by bulk writes",
            ["code"],
            registry=self.registry,
        )

        # System Metrics
        self._setup_process_metrics()

    def _setup_process_metrics(self):
        """Set up process-level metrics using psutil."""
        self.process_cpu_seconds = Counter(
            "process_cpu_seconds_total",
            "Total CPU time consumed by process",
            ["service"],
            registry=self.registry,
        )

        self.process_memory_bytes = Gauge(
            "process_resident_memory_bytes",
            "Resident memory size in bytes",
            ["service"],
            registry=self.registry,
        )

        self.process_open_fds = Gauge(
            "process_open_fds",
            "Number of open file descriptors",
            ["service"],
            registry=self.registry,
        )

        self._last_cpu_total = 0.0
        self.update_system_metrics()

    def update_system_metrics(self):
        """Update system metrics from psutil."""
        try:
            process = psutil.Process(os.getpid())

            # Counter can't be set, so feed it the delta since the last sample
            cpu_times = process.cpu_times()
            cpu_total = cpu_times.user + cpu_times.system
            cpu_diff = cpu_total - self._last_cpu_total
            if cpu_diff > 0:
                self.process_cpu_seconds.labels(service=self.service_name).inc(cpu_diff)
            self._last_cpu_total = cpu_total

            memory_info = process.memory_info()
            self.process_memory_bytes.labels(service=self.service_name).set(memory_info.rss)

            try:
                num_fds = process.num_fds()
                self.process_open_fds.labels(service=self.service_name).set(num_fds)
            except AttributeError:
                # num_fds() not available on all platforms
                pass

        except psutil.Error:
            pass

    def record_outcome(self, outcome: str, count: int = 1):
        """Record events that ended with ``outcome``."""
        if count:
            self.events_total.labels(outcome=outcome).inc(count)

    def record_batch(self, size: int, duration_seconds: float):
        """Record one processed batch."""
        self.batch_size.observe(size)
        self.batch_duration.observe(duration_seconds)

    def record_round_trip(self, operation: str):
        self.store_round_trips_total.labels(operation=operation).inc()

    def record_write_error(self, code: str):
        self.write_errors_total.labels(code=code).inc()
