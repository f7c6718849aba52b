"""Remote data-source client utilities."""
from .base import (
    DELETE,
    INSERT,
    UPDATE,
    BackendClientError,
    ChangeEvent,
    Channel,
    DataSource,
    RecordNotFoundError,
)
from .client import BackendClient, BackendClientConfig
from .realtime import PollingChannel

__all__ = [
    "DELETE",
    "INSERT",
    "UPDATE",
    "BackendClient",
    "BackendClientConfig",
    "BackendClientError",
    "ChangeEvent",
    "Channel",
    "DataSource",
    "PollingChannel",
    "RecordNotFoundError",
]
