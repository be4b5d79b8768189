"""HTTP client for the EMQ management API"""
import json
import time
from typing import Any, Dict, Optional
import httpx
from config import Config
from logging_config import get_logger
from version import user_agent
from .base import Fetcher
from .errors import (
    EnvelopeError,
    RequestBuildError,
    ResponseCodeError,
    StatusCodeError,
    TransportError,
)


logger = get_logger(__name__)


# Endpoint templates per API version, keyed by the name used as metric prefix
TARGETS = {
    "v2": {
        "monitoring_metrics": "/api/v2/monitoring/metrics/{node}",
        "monitoring_stats": "/api/v2/monitoring/stats/{node}",
        "monitoring_nodes": "/api/v2/monitoring/nodes/{node}",
        "management_nodes": "/api/v2/management/nodes/{node}",
    },
    "v3": {
        "nodes_metrics": "/api/v3/nodes/{node}/metrics/",
        "nodes_stats": "/api/v3/nodes/{node}/stats/",
        "nodes": "/api/v3/nodes/{node}",
    },
    "v4": {
        "nodes_metrics": "/api/v4/nodes/{node}/metrics/",
        "nodes_stats": "/api/v4/nodes/{node}/stats/",
        "nodes": "/api/v4/nodes/{node}",
    },
}

# JSON key holding the payload in the response envelope
PAYLOAD_KEYS = {
    "v2": "result",
    "v3": "data",
    "v4": "data",
}


class EMQClient(Fetcher):
    """Fetches node statistics from a single EMQ node.

    A single ``httpx.Client`` is kept for the lifetime of the object so that
    connections are reused between scrapes.
    """

    def __init__(
        self,
        host: str,
        node: str,
        api_version: str,
        username: str,
        password: str,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if api_version not in TARGETS:
            raise ValueError(f"unsupported API version {api_version!r}, expected one of {sorted(TARGETS)}")

        self.host = host
        self.node = node
        self.api_version = api_version
        self.targets = TARGETS[api_version]
        self.payload_key = PAYLOAD_KEYS[api_version]
        self.timeout = timeout
        self._client = httpx.Client(
            auth=httpx.BasicAuth(username, password),
            headers={
                "Accept": "application/json",
                "User-Agent": user_agent(),
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: Config, transport: Optional[httpx.BaseTransport] = None) -> "EMQClient":
        return cls(
            host=config.emq_uri,
            node=config.emq_node,
            api_version=config.emq_api_version,
            username=config.emq_username,
            password=config.emq_password,
            timeout=config.emq_timeout,
            transport=transport,
        )

    def fetch(self) -> Dict[str, Any]:
        """Query every endpoint of the configured API version and flatten the payloads"""
        data: Dict[str, Any] = {}

        for name in sorted(self.targets):
            payload = self.get(self.targets[name])
            for key, value in payload.items():
                data[f"{name}_{key.replace('/', '_')}"] = value

        return data

    def build_url(self, path: str) -> str:
        url = self.host + path.format(node=self.node)
        if "://" not in url:
            url = f"http://{url}"
        return url

    def get(self, path: str) -> Dict[str, Any]:
        """GET a single endpoint and return the payload of its envelope.

        ``timeout`` is the deadline for the whole request, body included.
        """
        url = self.build_url(path)
        logger.debug("Fetching from EMQ", url=url, event_type="fetch_start")
        deadline = time.monotonic() + self.timeout

        try:
            request = self._client.build_request("GET", url)
        except (httpx.InvalidURL, ValueError) as e:
            raise RequestBuildError(f"Failed to create http request for {url}: {e}") from e

        try:
            response = self._client.send(request, stream=True)
        except httpx.UnsupportedProtocol as e:
            raise RequestBuildError(f"Failed to create http request for {url}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to get metrics from {url}: {e}") from e

        try:
            if response.status_code != httpx.codes.OK:
                raise StatusCodeError(url, response.status_code)
            body = self._read_body(url, request, response, deadline)
        finally:
            response.close()

        try:
            envelope = json.loads(body)
        except ValueError as e:
            raise EnvelopeError(f"Error in json decoder for {url}: {e}") from e

        payload = self._unwrap(url, envelope)
        logger.debug("Fetched from EMQ", url=url, keys=len(payload), event_type="fetch_complete")
        return payload

    def _read_body(self, url: str, request: httpx.Request, response: httpx.Response, deadline: float) -> bytes:
        """Read the streamed body, giving up once ``deadline`` has passed"""
        timeouts = request.extensions.get("timeout", {})
        chunks = []

        try:
            for chunk in response.iter_bytes():
                chunks.append(chunk)
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransportError(f"Failed to get metrics from {url}: deadline of {self.timeout}s exceeded")
                # the next read may only wait for what is left of the deadline
                timeouts["read"] = remaining
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to get metrics from {url}: {e}") from e

        if time.monotonic() > deadline:
            raise TransportError(f"Failed to get metrics from {url}: deadline of {self.timeout}s exceeded")
        return b"".join(chunks)

    def _unwrap(self, url: str, envelope: Any) -> Dict[str, Any]:
        """Validate the ``{code, result|data}`` envelope and return its payload"""
        if not isinstance(envelope, dict):
            raise EnvelopeError(f"Unexpected response from {url}: expected a JSON object")

        code = envelope.get("code")
        if code is None:
            code = 0
        if isinstance(code, bool) or not isinstance(code, (int, float)):
            raise EnvelopeError(f"Unexpected response from {url}: code is not a number")
        if code != 0:
            raise ResponseCodeError(url, code)

        payload = envelope.get(self.payload_key)
        if payload is None:
            return {}
        if not isinstance(payload, dict):
            raise EnvelopeError(f"Unexpected response from {url}: {self.payload_key!r} is not a JSON object")
        return payload

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
