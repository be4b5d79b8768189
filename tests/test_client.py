"""Tests for the EMQ API client"""
import base64
import json
import time
import httpx
import pytest

from client.emq import EMQClient, TARGETS
from client.errors import (
    EnvelopeError,
    FetchError,
    RequestBuildError,
    ResponseCodeError,
    StatusCodeError,
    TransportError,
)
from config import Config


V3_RESPONSES = {
    "/api/v3/nodes/emqx/metrics/": {"code": 0, "data": {"messages/received": 42, "bytes/sent": 1024}},
    "/api/v3/nodes/emqx/stats/": {"code": 0, "data": {"connections/count": 3, "topics/max": 7}},
    "/api/v3/nodes/emqx": {"code": 0, "data": {"version": "v3.0.1", "memory_used": "123.19M", "load1": "0.5"}},
}


def json_response(body, status_code=200):
    return httpx.Response(status_code, content=json.dumps(body).encode("utf-8"))


class Broker:
    """Stub EMQ API recording the requests it receives"""

    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.get(request.url.path)
        if response is None:
            return httpx.Response(404, json={"message": "not found"})
        if isinstance(response, httpx.Response):
            return response
        return json_response(response)


def make_client(broker, host="http://emq.local:18083", api_version="v3", node="emqx", timeout=1.0):
    return EMQClient(
        host=host,
        node=node,
        api_version=api_version,
        username="admin",
        password="public",
        timeout=timeout,
        transport=httpx.MockTransport(broker),
    )


class TestFetch:
    """Test fetching and flattening of the broker statistics"""

    def setup_method(self):
        self.broker = Broker(dict(V3_RESPONSES))
        self.client = make_client(self.broker)

    def teardown_method(self):
        self.client.close()

    def test_fetch_flattens_all_endpoints(self):
        data = self.client.fetch()

        assert data == {
            "nodes_metrics_messages_received": 42,
            "nodes_metrics_bytes_sent": 1024,
            "nodes_stats_connections_count": 3,
            "nodes_stats_topics_max": 7,
            "nodes_version": "v3.0.1",
            "nodes_memory_used": "123.19M",
            "nodes_load1": "0.5",
        }

    def test_endpoints_requested_in_sorted_order(self):
        self.client.fetch()

        paths = [r.url.path for r in self.broker.requests]
        assert paths == [
            "/api/v3/nodes/emqx",
            "/api/v3/nodes/emqx/metrics/",
            "/api/v3/nodes/emqx/stats/",
        ]

    def test_request_headers(self):
        self.client.fetch()

        expected_auth = "Basic " + base64.b64encode(b"admin:public").decode("ascii")
        for request in self.broker.requests:
            assert request.method == "GET"
            assert request.headers["Authorization"] == expected_auth
            assert request.headers["Accept"] == "application/json"
            assert request.headers["User-Agent"].startswith("emq_exporter/")

    def test_non_200_status_fails(self):
        self.broker.responses["/api/v3/nodes/emqx/stats/"] = httpx.Response(404, json={"code": 0})

        with pytest.raises(StatusCodeError) as excinfo:
            self.client.fetch()

        assert "Received status code not ok" in str(excinfo.value)
        assert excinfo.value.status_code == 404

    def test_invalid_json_fails(self):
        self.broker.responses["/api/v3/nodes/emqx/stats/"] = httpx.Response(200, content=b"not valid json")

        with pytest.raises(EnvelopeError):
            self.client.fetch()

    def test_non_object_envelope_fails(self):
        self.broker.responses["/api/v3/nodes/emqx/stats/"] = [1, 2, 3]

        with pytest.raises(EnvelopeError):
            self.client.fetch()

    def test_non_object_payload_fails(self):
        self.broker.responses["/api/v3/nodes/emqx/stats/"] = {"code": 0, "data": [1, 2]}

        with pytest.raises(EnvelopeError):
            self.client.fetch()

    def test_non_numeric_code_fails(self):
        self.broker.responses["/api/v3/nodes/emqx/stats/"] = {"code": "0", "data": {}}

        with pytest.raises(EnvelopeError):
            self.client.fetch()

    def test_non_zero_code_fails(self):
        self.broker.responses["/api/v3/nodes/emqx/stats/"] = {"code": 1, "data": {}}

        with pytest.raises(ResponseCodeError) as excinfo:
            self.client.fetch()

        assert excinfo.value.code == 1

    def test_missing_code_and_payload_is_empty_success(self):
        self.broker.responses["/api/v3/nodes/emqx/stats/"] = {}

        data = self.client.fetch()

        assert "nodes_metrics_messages_received" in data
        assert not any(key.startswith("nodes_stats_") for key in data)

    def test_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(refuse)

        with pytest.raises(TransportError):
            client.fetch()

    def test_timeout_is_transport_error(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(slow)

        with pytest.raises(TransportError):
            client.fetch()

    def test_slow_body_hits_overall_deadline(self):
        def drip():
            yield b'{"code": 0, "data": {'
            for i in range(40):
                time.sleep(0.05)
                yield f'"k{i}": {i}, '.encode("utf-8")
            yield b'"last": 1}}'

        def slow_body(request):
            return httpx.Response(200, content=drip())

        client = make_client(slow_body, timeout=0.3)
        started = time.monotonic()

        with pytest.raises(TransportError, match="deadline"):
            client.get("/api/v3/nodes/emqx")

        assert time.monotonic() - started < 1.0

    def test_body_within_deadline(self):
        def chunks():
            yield b'{"code": 0, '
            yield b'"data": {"load1": "0.5"}}'

        client = make_client(lambda request: httpx.Response(200, content=chunks()))

        assert client.get("/api/v3/nodes/emqx") == {"load1": "0.5"}

    def test_read_error_in_body_is_transport_error(self):
        def broken():
            yield b'{"code": 0, '
            raise httpx.ReadError("connection reset")

        client = make_client(lambda request: httpx.Response(200, content=broken()))

        with pytest.raises(TransportError):
            client.get("/api/v3/nodes/emqx")

    def test_errors_share_base_class(self):
        self.broker.responses["/api/v3/nodes/emqx"] = {"code": 2}

        with pytest.raises(FetchError):
            self.client.fetch()


class TestUrls:
    """Test URL construction"""

    def test_scheme_backfill(self):
        broker = Broker(dict(V3_RESPONSES))
        client = make_client(broker, host="localhost:18083")

        client.fetch()

        assert broker.requests
        for request in broker.requests:
            assert str(request.url).startswith("http://localhost:18083/api/v3/nodes/emqx")

    def test_build_url_keeps_existing_scheme(self):
        client = make_client(Broker({}), host="https://emq.local")

        assert client.build_url("/api/v3/nodes/{node}") == "https://emq.local/api/v3/nodes/emqx"

    def test_invalid_url_is_request_build_error(self):
        client = make_client(Broker({}), host="http://[invalid")

        with pytest.raises(RequestBuildError):
            client.fetch()


class TestApiVersions:
    """Test endpoint sets and payload keys per API version"""

    def test_v2_reads_result_key(self):
        node = "emq@127.0.0.1"
        responses = {
            f"/api/v2/monitoring/metrics/{node}": {"code": 0, "result": {"packets/received": 10}},
            f"/api/v2/monitoring/stats/{node}": {"code": 0, "result": {"clients/count": 2}},
            f"/api/v2/monitoring/nodes/{node}": {"code": 0, "result": {"process_used": 300}},
            f"/api/v2/management/nodes/{node}": {"code": 0, "result": {"uptime": "10 seconds"}},
        }
        client = make_client(Broker(responses), api_version="v2", node=node)

        data = client.fetch()

        assert data == {
            "monitoring_metrics_packets_received": 10,
            "monitoring_stats_clients_count": 2,
            "monitoring_nodes_process_used": 300,
            "management_nodes_uptime": "10 seconds",
        }

    def test_v4_endpoints(self):
        responses = {
            path.format(node="emqx"): {"code": 0, "data": {name: 1}}
            for name, path in TARGETS["v4"].items()
        }
        broker = Broker(responses)
        client = make_client(broker, api_version="v4")

        data = client.fetch()

        assert data == {"nodes_metrics_nodes_metrics": 1, "nodes_stats_nodes_stats": 1, "nodes_nodes": 1}
        assert all(r.url.path.startswith("/api/v4/") for r in broker.requests)

    def test_unknown_version_rejected(self):
        with pytest.raises(ValueError):
            make_client(Broker({}), api_version="v5")

    def test_from_config(self):
        config = Config(emq_uri="emq.local:18083", emq_node="emqx", emq_api_version="v3").with_credentials("admin", "public")
        broker = Broker(dict(V3_RESPONSES))

        with EMQClient.from_config(config, transport=httpx.MockTransport(broker)) as client:
            client.fetch()

        assert str(broker.requests[0].url).startswith("http://emq.local:18083/")
