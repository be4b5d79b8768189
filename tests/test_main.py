"""Tests for command line handling and startup"""
import os
from unittest.mock import patch
import pytest
from prometheus_client import generate_latest

import main
from client.emq import EMQClient
from config import Config


@pytest.fixture(autouse=True)
def clean_env():
    env = {k: v for k, v in os.environ.items() if not k.upper().startswith(("EMQ_", "WEB_", "LOG_"))}
    with patch.dict(os.environ, env, clear=True):
        yield


class TestParseOverrides:
    """Test flag parsing"""

    def test_no_flags(self):
        assert main.parse_overrides([]) == {}

    def test_all_flags(self):
        overrides = main.parse_overrides([
            "--web.listen-address", "127.0.0.1:9999",
            "--web.telemetry-path", "/emq",
            "--emq.uri", "localhost:18083",
            "--emq.creds-file", "/etc/emq/auth.json",
            "--emq.node", "emqx@10.0.0.1",
            "--emq.timeout", "2s",
            "--emq.api-version", "v4",
            "--log.level", "debug",
        ])

        config = Config(**overrides)

        assert config.web_listen_address == "127.0.0.1:9999"
        assert config.web_telemetry_path == "/emq"
        assert config.emq_uri == "localhost:18083"
        assert str(config.emq_creds_file) == "/etc/emq/auth.json"
        assert config.emq_node == "emqx@10.0.0.1"
        assert config.emq_timeout == 2.0
        assert config.emq_api_version == "v4"
        assert config.log_level == "DEBUG"

    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main.parse_overrides(["--version"])

        assert excinfo.value.code == 0
        assert "emq_exporter Version" in capsys.readouterr().out


class TestCreateRegistry:

    def setup_method(self):
        config = Config(emq_uri="http://127.0.0.1:1").with_credentials("admin", "public")
        self.client = EMQClient.from_config(config)

    def teardown_method(self):
        self.client.close()

    def test_registry_exposes_exporter_metrics(self):
        registry = main.create_registry(self.client)
        names = {family.name for family in registry.collect()}

        assert "emq_up" in names
        assert "emq_exporter_total_scrapes" in names
        assert "emq_exporter_build" in names
        assert registry.get_sample_value("emq_up") == 0.0

    def test_counter_has_no_created_sample(self):
        registry = main.create_registry(self.client)

        output = generate_latest(registry).decode("utf-8")

        assert "emq_exporter_total_scrapes_total 1.0" in output
        assert "_created" not in output


class TestMain:
    """Test fatal startup paths"""

    def test_invalid_api_version_exits(self):
        with pytest.raises(SystemExit) as excinfo:
            main.main(["--emq.api-version", "v9"])

        assert excinfo.value.code == 1

    def test_missing_credentials_exits(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main.main(["--emq.creds-file", str(tmp_path / "missing.json")])

        assert excinfo.value.code == 1

    def test_starts_server_with_resolved_credentials(self):
        env = {"EMQ_USERNAME": "admin", "EMQ_PASSWORD": "secret"}

        with patch.dict(os.environ, env), patch.object(main.uvicorn, "run") as run:
            main.main(["--web.listen-address", "127.0.0.1:9541", "--emq.api-version", "v2"])

        run.assert_called_once()
        _, kwargs = run.call_args
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9541

    def test_client_closed_when_server_stops(self):
        env = {"EMQ_USERNAME": "admin", "EMQ_PASSWORD": "secret"}

        with patch.dict(os.environ, env), \
                patch.object(main.uvicorn, "run", side_effect=KeyboardInterrupt), \
                patch.object(EMQClient, "close") as close:
            with pytest.raises(KeyboardInterrupt):
                main.main([])

        close.assert_called_once()
