"""Metric models, value parsing and the broker metric registry"""
from .models import LeafKind, MetricType, MetricValue, leaf_kind
from .parser import parse_value
from .registry import MetricsRegistry

__all__ = [
    'LeafKind',
    'MetricType',
    'MetricValue',
    'MetricsRegistry',
    'leaf_kind',
    'parse_value',
]
