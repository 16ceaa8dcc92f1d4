"""Prometheus metrics for the lifecycle controller."""

from prometheus_client import REGISTRY, generate_latest


def get_metrics_text() -> bytes:
    """Render the default registry in Prometheus text format."""
    return generate_latest(REGISTRY)


__all__ = ["get_metrics_text"]
