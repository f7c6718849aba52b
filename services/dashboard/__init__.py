"""Operator tooling for the PrecastFlow dashboard."""

from .config import (
    DEFAULT_CONFIG_PATH,
    BackendSettings,
    DashboardConfig,
    GridSettings,
    InvoiceSettings,
    load_config,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "BackendSettings",
    "DashboardConfig",
    "GridSettings",
    "InvoiceSettings",
    "load_config",
]
