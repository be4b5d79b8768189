"""Prometheus collector translating EMQ node statistics into gauges"""
import re
import time
from typing import Any, Dict, Iterator, List, Tuple
from prometheus_client import Counter, Gauge
from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector
from client.base import Fetcher
from client.errors import FetchError
from metrics.models import LeafKind, leaf_kind
from metrics.parser import parse_value
from metrics.registry import MetricsRegistry
from logging_config import get_logger, log_scrape


logger = get_logger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def metric_name(namespace: str, key: str) -> str:
    """Build a Prometheus-safe metric name, e.g. ``emq_nodes_metrics_messages_received``"""
    return f"{namespace}_{_INVALID_NAME_CHARS.sub('_', key)}"


class EMQCollector(Collector):
    """Scrapes the broker on every ``collect`` call.

    Broker metrics are not known up front: each key seen in a scrape is
    registered as a gauge and kept for the rest of the process, so a failed
    scrape still exposes the last known values alongside ``emq_up 0``.
    """

    def __init__(self, fetcher: Fetcher, namespace: str = "emq"):
        self.fetcher = fetcher
        self.namespace = namespace
        self.registry = MetricsRegistry()

        self.up = Gauge(
            "up",
            "Was the last scrape of EMQ successful",
            namespace=namespace,
            registry=None,
        )
        self.total_scrapes = Counter(
            "exporter_total_scrapes",
            "Current total scrapes.",
            namespace=namespace,
            registry=None,
        )

    def describe(self) -> Iterator[Metric]:
        """Only the meta metrics are known before the first scrape"""
        yield from self.up.describe()
        yield from self.total_scrapes.describe()

    def collect(self) -> Iterator[Metric]:
        start_time = time.time()
        up = self.scrape()

        self.up.set(1 if up else 0)
        self.total_scrapes.inc()

        snapshot = self.registry.snapshot()
        log_scrape(logger, len(snapshot), time.time() - start_time, up)

        yield from self.up.collect()
        yield from self.total_scrapes.collect()

        for metric in snapshot:
            yield GaugeMetricFamily(metric.name, metric.help_text, value=metric.value)

    def scrape(self) -> bool:
        """Fetch once and update the registry; returns whether the scrape succeeded"""
        try:
            data = self.fetcher.fetch()
        except FetchError as e:
            logger.warning("Scrape of EMQ failed", error=str(e), error_type=type(e).__name__, event_type="scrape_error")
            return False

        self.registry.upsert_many(self.to_samples(data))
        return True

    def to_samples(self, data: Dict[str, Any]) -> List[Tuple[str, str, float]]:
        """Convert fetched leaves into ``(name, help, value)`` tuples, skipping unusable ones"""
        samples = []

        for key, leaf in data.items():
            kind = leaf_kind(leaf)

            if kind is LeafKind.NUMBER or kind is LeafKind.STRING:
                try:
                    value = parse_value(leaf)
                except ValueError as e:
                    logger.debug("Can't parse value", key=key, value=leaf, error=str(e))
                    continue
            else:
                logger.debug("Skipping value of unsupported type", key=key, value_type=type(leaf).__name__)
                continue

            samples.append((metric_name(self.namespace, key), key, value))

        return samples
