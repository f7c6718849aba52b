from __future__ import annotations

from pathlib import Path

import pytest

from services.dashboard import DEFAULT_CONFIG_PATH, load_config


def test_load_config_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path / "missing.yaml")

    assert config.log_level == "INFO"
    assert config.backend.request_timeout == 10.0
    assert config.backend.poll_interval == 5.0
    assert config.grid.page_size == 10
    assert config.grid.page_size_options == (10, 20, 30, 40, 50)
    assert config.invoice.tax_rate == 0.10


def test_load_config_parses_values(tmp_path: Path) -> None:
    config_text = """
    log_level: debug
    backend:
      request_timeout: 2.5
      poll_interval: 1
    grid:
      page_size: 25
      page_size_options: [25, 50]
    invoice:
      tax_rate: 0.2
      discount: 15
    """
    config_path = tmp_path / "dashboard.yaml"
    config_path.write_text(config_text, encoding="utf-8")

    config = load_config(config_path)

    assert config.log_level == "DEBUG"
    assert config.backend.request_timeout == 2.5
    assert config.backend.poll_interval == 1.0
    assert config.grid.page_size == 25
    assert config.grid.page_size_options == (25, 50)
    assert config.invoice.tax_rate == 0.2
    assert config.invoice.discount == 15.0


def test_malformed_values_fall_back_to_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "dashboard.yaml"
    config_path.write_text(
        "backend:\n  request_timeout: soon\n  poll_interval: -3\ngrid:\n  page_size: 7\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.backend.request_timeout == 10.0
    assert config.backend.poll_interval == 5.0
    assert config.grid.page_size == 10


def test_non_mapping_document_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "dashboard.yaml"
    config_path.write_text("- one\n- two\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_bundled_config_loads() -> None:
    config = load_config(DEFAULT_CONFIG_PATH)

    assert config.grid.page_size in config.grid.page_size_options
