"""Minimal PostgREST client for the hosted dashboard backend."""
from __future__ import annotations

import logging
import os
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import requests
from dotenv import load_dotenv

from .base import BackendClientError, ChangeCallback, Channel, ChannelRegistry
from .realtime import PollingChannel

# Load environment variables from .env file
ROOT = pathlib.Path(__file__).resolve().parents[2]
load_dotenv(ROOT / ".env")


@dataclass
class BackendClientConfig:
    """Configuration for connecting to the hosted backend."""

    url: str
    api_key: str
    timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "BackendClientConfig":
        """Create a configuration by reading environment variables."""
        env_map = {
            "SUPABASE_URL": os.getenv("SUPABASE_URL"),
            "SUPABASE_KEY": os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_ANON_KEY"),
        }
        missing = [name for name, value in env_map.items() if not value]
        if missing:
            raise BackendClientError(
                "Missing required environment variables: " + ", ".join(sorted(missing))
            )
        return cls(url=env_map["SUPABASE_URL"], api_key=env_map["SUPABASE_KEY"])


class BackendClient:
    """Small helper around the PostgREST table API."""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        poll_interval: float = 5.0,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        config = self._build_config(url, api_key)
        self.url = config.url.rstrip("/")
        self.api_key = config.api_key
        self.timeout = float(timeout if timeout is not None else config.timeout)
        self.poll_interval = max(float(poll_interval), 0.1)
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )
        self._channels = ChannelRegistry()
        self._logger = logger or logging.getLogger("precastflow.backend")

    @staticmethod
    def _build_config(url: Optional[str], api_key: Optional[str]) -> BackendClientConfig:
        if url and api_key:
            return BackendClientConfig(url=url, api_key=api_key)
        if url or api_key:
            missing = [name for name, value in {"url": url, "api_key": api_key}.items() if not value]
            raise BackendClientError(
                "Incomplete credentials supplied. Missing: " + ", ".join(sorted(missing))
            )
        return BackendClientConfig.from_env()

    # Table API ------------------------------------------------------------------
    def select_all(self, table: str, columns: str = "*") -> List[Dict[str, Any]]:
        rows = self._request("GET", table, params={"select": columns})
        if not isinstance(rows, list):
            raise BackendClientError(f"Unexpected response for {table}: expected a list of rows")
        return rows

    def insert(self, table: str, record: Mapping[str, Any], columns: str = "*") -> Dict[str, Any]:
        rows = self._request(
            "POST",
            table,
            params={"select": columns},
            json=[dict(record)],
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise BackendClientError(f"Insert into {table} returned no row")
        return rows[0]

    def update(
        self,
        table: str,
        changes: Mapping[str, Any],
        *,
        match: Mapping[str, Any],
        columns: str = "*",
    ) -> Optional[Dict[str, Any]]:
        if not match:
            raise BackendClientError("Refusing to update without a match filter")
        params = {column: f"eq.{value}" for column, value in match.items()}
        params["select"] = columns
        rows = self._request(
            "PATCH",
            table,
            params=params,
            json=dict(changes),
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            return None
        return rows[0]

    # Change channels --------------------------------------------------------------
    def subscribe(self, table: str, callback: ChangeCallback, *, primary_key: str) -> Channel:
        channel = PollingChannel(
            self,
            table,
            callback,
            primary_key=primary_key,
            interval=self.poll_interval,
        )
        self._channels.add(channel)
        channel.start()
        self._logger.info("Opened change channel %s", channel.name)
        return channel

    def remove_channel(self, channel: Channel) -> None:
        self._channels.remove(channel)
        self._logger.info("Closed change channel %s", channel.name)

    # Internal helpers ------------------------------------------------------------
    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        endpoint = f"{self.url}/rest/v1/{table}"
        try:
            response = self._session.request(
                method,
                endpoint,
                params=dict(params or {}),
                json=json,
                headers=dict(headers or {}),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise BackendClientError(f"Request to {table} timed out after {self.timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            raise BackendClientError(f"Request to {table} failed: {exc}") from exc
        if response.status_code >= 400:
            raise BackendClientError(_error_message(response))
        if not response.content:
            return []
        try:
            return response.json()
        except ValueError as exc:
            raise BackendClientError(f"Invalid JSON returned for {table}") from exc


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, Mapping) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code} from backend"


__all__ = ["BackendClient", "BackendClientConfig"]
