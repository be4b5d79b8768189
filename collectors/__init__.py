"""Prometheus collectors"""
from .emq import EMQCollector, metric_name

__all__ = [
    'EMQCollector',
    'metric_name'
]
