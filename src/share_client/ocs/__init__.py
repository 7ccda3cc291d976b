"""OCS transport and Share API endpoints."""

from .client import OcsClient
from .errors import (
    NO_STATUS_CODE,
    MalformedShareError,
    OcsError,
    OcsMalformedResponseError,
    OcsTransportError,
)
from .share_api import ShareApi

__all__ = [
    'MalformedShareError',
    'NO_STATUS_CODE',
    'OcsClient',
    'OcsError',
    'OcsMalformedResponseError',
    'OcsTransportError',
    'ShareApi',
]
