"""
Prometheus metrics for the refinement pipeline

Counters live on a private registry so that importing the package never
touches the global default registry. Nothing here starts an HTTP server; the
CLI can dump the text exposition after a run.
"""
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()


# Raw rows handled by the driver
records_processed_total = Counter(
    name="refine_records_processed_total",
    documentation="Total number of raw records handled by the pipeline",
    labelnames=["dataset_id", "status"],  # status: written, skipped
    registry=REGISTRY,
)

# Lines written per output stream
lines_written_total = Counter(
    name="refine_lines_written_total",
    documentation="Total number of data lines written",
    labelnames=["dataset_id", "stream"],  # stream: events, occurrences
    registry=REGISTRY,
)

# Backbone lookups (cache misses only) by verbatim match type
taxon_lookups_total = Counter(
    name="refine_taxon_lookups_total",
    documentation="Total number of name matching lookups by match type",
    labelnames=["match_type"],
    registry=REGISTRY,
)

# Dataset runs by final state
runs_total = Counter(
    name="refine_runs_total",
    documentation="Total number of dataset runs",
    labelnames=["dataset_id", "state"],  # state: DONE, FAILED
    registry=REGISTRY,
)

run_duration_seconds = Histogram(
    name="refine_run_duration_seconds",
    documentation="Wall-clock duration of dataset runs in seconds",
    labelnames=["dataset_id"],
    buckets=[1.0, 5.0, 30.0, 60.0, 300.0, 900.0, 3600.0],
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)
