"""Configuration helpers for the dashboard runner."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, MutableMapping, Optional, Tuple

import yaml

from services.grid import DEFAULT_PAGE_SIZE_OPTIONS
from services.invoicing import DEFAULT_TAX_RATE

DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.yaml")


@dataclass
class BackendSettings:
    """Transport settings for the hosted backend."""

    request_timeout: float = 10.0
    poll_interval: float = 5.0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, object]]) -> "BackendSettings":
        if not data:
            return cls()
        return cls(
            request_timeout=_positive_float(data.get("request_timeout"), cls.request_timeout),
            poll_interval=_positive_float(data.get("poll_interval"), cls.poll_interval),
        )


@dataclass
class GridSettings:
    page_size: int = 10
    page_size_options: Tuple[int, ...] = DEFAULT_PAGE_SIZE_OPTIONS

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, object]]) -> "GridSettings":
        if not data:
            return cls()
        options = cls.page_size_options
        raw_options = data.get("page_size_options")
        if isinstance(raw_options, (list, tuple)):
            parsed = []
            for value in raw_options:
                try:
                    size = int(value)
                except (TypeError, ValueError):
                    continue
                if size > 0:
                    parsed.append(size)
            if parsed:
                options = tuple(sorted(set(parsed)))
        try:
            page_size = int(data.get("page_size", cls.page_size))
        except (TypeError, ValueError):
            page_size = cls.page_size
        if page_size not in options:
            page_size = options[0]
        return cls(page_size=page_size, page_size_options=options)


@dataclass
class InvoiceSettings:
    tax_rate: float = DEFAULT_TAX_RATE
    discount: float = 0.0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, object]]) -> "InvoiceSettings":
        if not data:
            return cls()
        return cls(
            tax_rate=_non_negative_float(data.get("tax_rate"), cls.tax_rate),
            discount=_non_negative_float(data.get("discount"), cls.discount),
        )


@dataclass
class DashboardConfig:
    """Top-level configuration for the dashboard runner."""

    log_level: str = "INFO"
    backend: BackendSettings = field(default_factory=BackendSettings)
    grid: GridSettings = field(default_factory=GridSettings)
    invoice: InvoiceSettings = field(default_factory=InvoiceSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "DashboardConfig":
        log_level_value = data.get("log_level", cls.log_level)
        log_level = str(log_level_value).strip() or cls.log_level
        return cls(
            log_level=log_level.upper(),
            backend=BackendSettings.from_mapping(_get_mapping(data, "backend")),
            grid=GridSettings.from_mapping(_get_mapping(data, "grid")),
            invoice=InvoiceSettings.from_mapping(_get_mapping(data, "invoice")),
        )


def load_config(path: Path | None = None) -> DashboardConfig:
    """Load dashboard configuration from YAML."""

    config_path = path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        return DashboardConfig()
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Dashboard configuration must be a mapping")
    return DashboardConfig.from_mapping(data)


def _get_mapping(data: Mapping[str, object], key: str) -> MutableMapping[str, object]:
    value = data.get(key)
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def _positive_float(value: object, default: float) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _non_negative_float(value: object, default: float) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return max(number, 0.0)


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "BackendSettings",
    "DashboardConfig",
    "GridSettings",
    "InvoiceSettings",
    "load_config",
]
