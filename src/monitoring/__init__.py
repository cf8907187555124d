"""
Monitoring for the book order router.

Prometheus counters and histograms for generated, published, failed
and consumed orders.
"""

from src.monitoring.metrics import PipelineMetrics

__all__ = ["PipelineMetrics"]
