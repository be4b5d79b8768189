#!/usr/bin/env python3
"""Main entry point for EMQ Exporter"""
import argparse
import sys
from typing import Any, Dict, List, Optional
import uvicorn
from prometheus_client import CollectorRegistry, PlatformCollector, ProcessCollector, disable_created_metrics
from pydantic import ValidationError
from config import Config
from app.server import MetricsServer
from client.base import Fetcher
from client.emq import EMQClient
from collectors.emq import EMQCollector
from utils.credentials import CredentialsError, resolve_credentials
from version import register_build_info, version_info
from logging_config import setup_structured_logging, get_logger, log_server_startup, log_error


# flag -> Config field
FLAGS = {
    "web.listen-address": ("web_listen_address", "Address to listen on for web interface and telemetry. (default :9540)"),
    "web.telemetry-path": ("web_telemetry_path", "Path under which to expose metrics. (default /metrics)"),
    "emq.uri": ("emq_uri", "HTTP API address of the EMQ node. (default http://127.0.0.1:18083)"),
    "emq.creds-file": ("emq_creds_file", "Path to json file containing emq credentials. (default ./auth.json)"),
    "emq.node": ("emq_node", "Node name of the emq node to scrape. (default emq@127.0.0.1)"),
    "emq.timeout": ("emq_timeout", "Timeout for trying to get stats from emq, e.g. 5s or 500ms. (default 5s)"),
    "emq.api-version": ("emq_api_version", "The API version used by EMQ, one of v2, v3, v4. (default v3)"),
    "log.level": ("log_level", "Only log messages with the given severity or above. (default INFO)"),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="emq_exporter",
        description="Prometheus exporter for the EMQ MQTT broker.",
    )
    for flag, (dest, help_text) in FLAGS.items():
        # None means "not given", leaving the environment or the default in place
        parser.add_argument(f"--{flag}", dest=dest, default=None, help=help_text)
    parser.add_argument("--version", action="version", version=f"emq_exporter {version_info()}")
    return parser


def parse_overrides(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """Parse command line flags into Config keyword overrides"""
    args = build_parser().parse_args(argv)
    return {key: value for key, value in vars(args).items() if value is not None}


def create_registry(fetcher: Fetcher) -> CollectorRegistry:
    """Build the registry served on the telemetry path"""
    # counters expose only their _total sample
    disable_created_metrics()

    registry = CollectorRegistry()
    registry.register(EMQCollector(fetcher))
    register_build_info(registry)
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    return registry


def main(argv: Optional[List[str]] = None) -> None:
    """Main application entry point"""
    overrides = parse_overrides(argv)

    try:
        config = Config(**overrides)
    except ValidationError as e:
        log_error(get_logger(__name__), e, {"component": "main", "phase": "config"})
        sys.exit(1)

    setup_structured_logging(config)
    logger = get_logger(__name__)
    log_server_startup(logger, config, version_info())

    if config.is_deprecated_api():
        logger.warning(
            "API version v2 is deprecated and will be removed in a future release",
            emq_api_version=config.emq_api_version,
            event_type="deprecation"
        )

    try:
        username, password = resolve_credentials(config.emq_creds_file)
    except (CredentialsError, OSError, ValueError) as e:
        log_error(logger, e, {"component": "main", "phase": "credentials", "path": str(config.emq_creds_file)})
        sys.exit(1)

    config = config.with_credentials(username, password)

    client = EMQClient.from_config(config)
    server = MetricsServer(config, create_registry(client))

    logger.info("Listening on", address=config.web_listen_address, event_type="server_listen")
    try:
        # uvicorn exits non-zero if the address can't be bound
        uvicorn.run(
            server.get_app(),
            host=config.listen_host,
            port=config.listen_port,
            log_config=None  # We handle logging ourselves
        )
    finally:
        client.close()


if __name__ == '__main__':
    main()
