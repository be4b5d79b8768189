"""Metric data models"""
from dataclasses import dataclass
from enum import Enum
from typing import Any


class MetricType(Enum):
    """Prometheus metric types"""
    COUNTER = "counter"
    GAUGE = "gauge"


class LeafKind(Enum):
    """Shape of a JSON leaf returned by the broker"""
    NUMBER = "number"
    STRING = "string"
    OTHER = "other"


def leaf_kind(value: Any) -> LeafKind:
    """Classify a decoded JSON value"""
    # bool is an int subclass but never a sample
    if isinstance(value, bool):
        return LeafKind.OTHER
    if isinstance(value, (int, float)):
        return LeafKind.NUMBER
    if isinstance(value, str):
        return LeafKind.STRING
    return LeafKind.OTHER


@dataclass(frozen=True)
class MetricValue:
    """Single observed broker metric"""
    name: str
    value: float
    help_text: str
    metric_type: MetricType = MetricType.GAUGE
