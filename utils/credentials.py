"""Discovery of the EMQ API credentials"""
import json
import os
from pathlib import Path
from typing import Tuple, Union
from logging_config import get_logger


logger = get_logger(__name__)

USERNAME_ENV = "EMQ_USERNAME"
PASSWORD_ENV = "EMQ_PASSWORD"


class CredentialsError(Exception):
    """Raised when no usable username/password pair can be found"""


def resolve_credentials(path: Union[str, Path]) -> Tuple[str, str]:
    """Find the broker credentials.

    Precedence:
      1. the ``EMQ_USERNAME`` and ``EMQ_PASSWORD`` environment variables
      2. a JSON file at ``path`` holding ``username`` and ``password``

    Errors reading or decoding the file are raised unchanged.
    """
    logger.debug("Loading credentials", event_type="credentials_lookup")
    try:
        return load_from_env()
    except CredentialsError as e:
        logger.debug("Credentials not found in environment", reason=str(e), event_type="credentials_lookup")
        return load_from_file(path)


def load_from_env() -> Tuple[str, str]:
    """Read credentials from the environment; both variables must be set"""
    username = os.environ.get(USERNAME_ENV)
    if username is None:
        raise CredentialsError(f"Can't find {USERNAME_ENV}")

    password = os.environ.get(PASSWORD_ENV)
    if password is None:
        raise CredentialsError(f"Can't find {PASSWORD_ENV}")

    return username, password


def load_from_file(path: Union[str, Path]) -> Tuple[str, str]:
    """Read credentials from a JSON file.

    When both fields are missing the password error is the one reported.
    """
    abs_path = Path(path).resolve()
    logger.debug("Loading credentials from file", path=str(abs_path), event_type="credentials_lookup")

    data = json.loads(abs_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise CredentialsError(f"credentials in {path} must be a JSON object")

    username = data.get("username") or ""
    password = data.get("password") or ""
    if not isinstance(username, str) or not isinstance(password, str):
        raise CredentialsError(f"username and password in {path} must be strings")

    error = None
    if not username:
        error = CredentialsError(f"missing username in {path}")
    if not password:
        error = CredentialsError(f"missing password in {path}")
    if error is not None:
        raise error

    return username, password
