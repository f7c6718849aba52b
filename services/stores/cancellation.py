"""Cancellation tokens for remote store calls."""
from __future__ import annotations

import threading
from typing import Optional


class RequestCancelled(RuntimeError):
    """Raised when a store call is abandoned through its cancel token."""


class CancelToken:
    """Flag shared between a caller and the store call it started.

    Used as a context manager the token cancels itself on exit, so a call
    still in flight when the caller goes away discards its response.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "request cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelled(self.reason or "request cancelled")

    def __enter__(self) -> "CancelToken":
        return self

    def __exit__(self, *_: object) -> None:
        self.cancel("caller released the token")


def check(token: Optional[CancelToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()


__all__ = ["CancelToken", "RequestCancelled", "check"]
