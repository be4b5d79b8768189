"""Errors raised while fetching metrics from the EMQ API"""


class FetchError(Exception):
    """Base class for every failure that aborts a scrape"""


class RequestBuildError(FetchError):
    """The request could not be constructed, e.g. an invalid URL"""


class TransportError(FetchError):
    """Connection failures and timeouts"""


class StatusCodeError(FetchError):
    """The broker answered with a status other than 200"""

    def __init__(self, url: str, status_code: int):
        super().__init__(f"Received status code not ok {url}, got {status_code}")
        self.url = url
        self.status_code = status_code


class EnvelopeError(FetchError):
    """The body is not JSON or not shaped like an EMQ response"""


class ResponseCodeError(FetchError):
    """The envelope carried a non-zero ``code``"""

    def __init__(self, url: str, code: float):
        super().__init__(f"Received code != 0 from EMQ {url}, got {code}")
        self.url = url
        self.code = code
