"""Typed client for remote OCS shares (user, group, remote and link grants)."""

from .account import Account
from .events import (
    EXPIRE_DATE_SET,
    LINK_SHARE_CREATED,
    LINK_SHARE_REQUIRES_PASSWORD,
    PASSWORD_SET,
    PERMISSIONS_SET,
    PUBLIC_UPLOAD_SET,
    SERVER_ERROR,
    SHARE_CREATED,
    SHARE_DELETED,
    SHARES_FETCHED,
    EventBus,
    InMemoryShareEventSink,
    ShareEvent,
    redact_secret,
)
from .manager import ShareManager, is_password_required_error
from .model import (
    ALL_PERMISSIONS,
    LinkShare,
    Permission,
    Share,
    ShareType,
    validate_permissions,
)
from .ocs import (
    MalformedShareError,
    OcsClient,
    OcsError,
    OcsMalformedResponseError,
    OcsTransportError,
    ShareApi,
)
from .settings import ShareClientSettings
from .sharee import Sharee

__all__ = [
    'ALL_PERMISSIONS',
    'Account',
    'EXPIRE_DATE_SET',
    'EventBus',
    'InMemoryShareEventSink',
    'LINK_SHARE_CREATED',
    'LINK_SHARE_REQUIRES_PASSWORD',
    'LinkShare',
    'MalformedShareError',
    'OcsClient',
    'OcsError',
    'OcsMalformedResponseError',
    'OcsTransportError',
    'PASSWORD_SET',
    'PERMISSIONS_SET',
    'PUBLIC_UPLOAD_SET',
    'Permission',
    'SERVER_ERROR',
    'SHARES_FETCHED',
    'SHARE_CREATED',
    'SHARE_DELETED',
    'Share',
    'ShareApi',
    'ShareClientSettings',
    'ShareEvent',
    'ShareManager',
    'ShareType',
    'Sharee',
    'is_password_required_error',
    'redact_secret',
    'validate_permissions',
]
