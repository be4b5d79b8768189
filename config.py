"""Configuration management for EMQ Exporter"""
import re
from pathlib import Path
from typing import Literal, Optional, Tuple
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


API_VERSIONS = ("v2", "v3", "v4")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value) -> float:
    """Parse a duration such as ``5s``, ``500ms`` or ``1m30s`` into seconds.

    Bare numbers are taken as seconds.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)

    text = str(value).strip()
    try:
        return float(text)
    except ValueError:
        pass

    if not text:
        raise ValueError("empty duration")

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"invalid duration {text!r}")
    return total


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` into its parts; an empty host means all interfaces"""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {address!r}")
    if not port.isdigit() or not 0 < int(port) <= 65535:
        raise ValueError(f"invalid port in address {address!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host or "0.0.0.0", int(port)


class Config(BaseSettings):
    """Exporter settings, read from the environment and overridden by command line flags.

    Instances are immutable; use ``with_credentials`` to attach the resolved
    broker credentials.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        frozen=True,
    )

    # Broker settings
    emq_uri: str = Field(default="http://127.0.0.1:18083", description="HTTP API address of the EMQ node")
    emq_node: str = Field(default="emq@127.0.0.1", description="Node name of the EMQ node to scrape")
    emq_api_version: Literal["v2", "v3", "v4"] = Field(default="v3", description="The API version used by EMQ")
    emq_timeout: float = Field(default=5.0, gt=0, description="Timeout for each request to EMQ, in seconds")
    emq_creds_file: Path = Field(default=Path("./auth.json"), description="Path to a JSON file holding EMQ credentials")
    emq_username: str = Field(default="", description="EMQ API username")
    emq_password: str = Field(default="", repr=False, description="EMQ API password")

    # Server settings
    web_listen_address: str = Field(default=":9540", description="Address to listen on for web interface and telemetry")
    web_telemetry_path: str = Field(default="/metrics", description="Path under which to expose metrics")
    enable_request_logging: bool = Field(default=False, description="Log every HTTP request served")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file, in addition to stdout")

    @field_validator('emq_timeout', mode='before')
    @classmethod
    def validate_timeout(cls, v):
        """Accept Go style duration strings"""
        return parse_duration(v)

    @field_validator('emq_api_version', mode='before')
    @classmethod
    def normalize_api_version(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator('web_listen_address')
    @classmethod
    def validate_listen_address(cls, v):
        parse_listen_address(v)
        return v

    @field_validator('web_telemetry_path')
    @classmethod
    def validate_telemetry_path(cls, v):
        if not v.startswith("/"):
            raise ValueError("telemetry path must start with '/'")
        if v == "/":
            raise ValueError("telemetry path must not be the index page '/'")
        return v

    @field_validator('log_file')
    @classmethod
    def ensure_log_directory(cls, v):
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def listen_host(self) -> str:
        return parse_listen_address(self.web_listen_address)[0]

    @property
    def listen_port(self) -> int:
        return parse_listen_address(self.web_listen_address)[1]

    def is_deprecated_api(self) -> bool:
        """v2 is the EMQ 2.x API and is only kept for older brokers"""
        return self.emq_api_version == "v2"

    def with_credentials(self, username: str, password: str) -> "Config":
        """Return a copy carrying the given broker credentials"""
        return self.model_copy(update={"emq_username": username, "emq_password": password})
