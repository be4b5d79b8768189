"""Registry of broker metrics discovered across scrapes"""
import threading
from collections import OrderedDict
from typing import Dict, Iterable, List, Tuple
from .models import MetricValue, MetricType


class MetricsRegistry:
    """Insertion-ordered set of gauges keyed by fully-qualified name.

    Names are never removed once observed; each scrape only overwrites values.
    All access goes through a single lock so a snapshot never contains a
    partially applied batch.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._metrics: Dict[str, MetricValue] = OrderedDict()

    def upsert(self, name: str, help_text: str, value: float) -> None:
        """Set the value of ``name``, registering it on first sight"""
        with self._lock:
            self._upsert_locked(name, help_text, value)

    def upsert_many(self, samples: Iterable[Tuple[str, str, float]]) -> None:
        """Apply a batch of ``(name, help_text, value)`` updates atomically"""
        samples = list(samples)
        with self._lock:
            for name, help_text, value in samples:
                self._upsert_locked(name, help_text, value)

    def _upsert_locked(self, name: str, help_text: str, value: float) -> None:
        existing = self._metrics.get(name)
        if existing is None:
            self._metrics[name] = MetricValue(
                name=name,
                value=value,
                help_text=help_text,
                metric_type=MetricType.GAUGE,
            )
        else:
            # first help text wins
            self._metrics[name] = MetricValue(
                name=name,
                value=value,
                help_text=existing.help_text,
                metric_type=existing.metric_type,
            )

    def snapshot(self) -> List[MetricValue]:
        """Independent copy of the current entries"""
        with self._lock:
            return list(self._metrics.values())

    def names(self) -> List[str]:
        with self._lock:
            return list(self._metrics.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._metrics
