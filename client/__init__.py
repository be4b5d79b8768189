"""Client for the EMQ HTTP management API"""
from .base import Fetcher
from .emq import EMQClient, TARGETS
from .errors import (
    EnvelopeError,
    FetchError,
    RequestBuildError,
    ResponseCodeError,
    StatusCodeError,
    TransportError,
)

__all__ = [
    'EMQClient',
    'EnvelopeError',
    'FetchError',
    'Fetcher',
    'RequestBuildError',
    'ResponseCodeError',
    'StatusCodeError',
    'TARGETS',
    'TransportError',
]
