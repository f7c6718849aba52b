"""Command-line interface for the dashboard stores."""
from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path
from typing import Dict, List, Mapping, Type

from sqlalchemy.exc import SQLAlchemyError

from packages.backend_client import BackendClient, BackendClientError, DataSource
from packages.db import LocalBackend, ensure_db_path
from packages.schema import SchemaValidationError

from services.dashboard.config import DEFAULT_CONFIG_PATH, DashboardConfig, load_config
from services.grid import grid_for
from services.inventory import export_filename, export_inventory_csv, next_sku_id, summarize_inventory
from services.invoicing import compute_invoice, lines_from_products
from services.stores import (
    EntityStore,
    ProductMaterialStore,
    ProductStore,
    ProductionBatchStore,
    RawMaterialStore,
    StoreStatus,
)

LOGGER_NAME = "precastflow.runner"

STORES: Dict[str, Type[EntityStore]] = {
    "products": ProductStore,
    "raw-materials": RawMaterialStore,
    "production-batches": ProductionBatchStore,
    "product-materials": ProductMaterialStore,
}


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")


def _load_config(path: Path) -> DashboardConfig:
    try:
        return load_config(path)
    except FileNotFoundError:
        logging.getLogger(LOGGER_NAME).warning("Configuration file %s not found; using defaults", path)
        return DashboardConfig()


def _prepare(args: argparse.Namespace) -> tuple[DashboardConfig, logging.Logger]:
    config_path = Path(args.config) if args.config else DEFAULT_CONFIG_PATH
    config = _load_config(config_path)
    _configure_logging(config.log_level)
    return config, logging.getLogger(LOGGER_NAME)


def _build_source(args: argparse.Namespace, config: DashboardConfig, logger: logging.Logger) -> DataSource:
    if args.local:
        db_path = ensure_db_path(Path(args.db_path) if args.db_path else None)
        return LocalBackend(db_path, logger=logger.getChild("backend"))
    return BackendClient(
        timeout=config.backend.request_timeout,
        poll_interval=config.backend.poll_interval,
        logger=logger.getChild("backend"),
    )


def _fetch_store(name: str, source: DataSource, logger: logging.Logger) -> EntityStore:
    store = STORES[name](source, logger=logger.getChild(name))
    store.fetch()
    if store.status is StoreStatus.ERROR:
        raise BackendClientError(store.error or f"Failed to fetch {name}")
    return store


def cmd_fetch(args: argparse.Namespace) -> int:
    config, logger = _prepare(args)
    try:
        source = _build_source(args, config, logger)
        store = _fetch_store(args.entity, source, logger)
    except BackendClientError:
        logger.exception("Fetch of %s failed", args.entity)
        return 1

    print(f"{store.label.capitalize()}: {len(store)}")
    grid = grid_for(
        store,
        page_size=config.grid.page_size,
        page_size_options=config.grid.page_size_options,
        logger=logger.getChild("grid"),
    )
    rows = grid.page_rows() if grid is not None else list(store.records)
    for row in rows:
        print(json.dumps(row, sort_keys=True, default=str))
    if args.entity == "products":
        summary = summarize_inventory(store.records)
        print(json.dumps(summary.to_dict(), indent=2, sort_keys=True))
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    config, logger = _prepare(args)
    if args.local:
        # the local backend only broadcasts writes made through this process
        logger.error("Watching needs the hosted backend; --local cannot observe other writers")
        return 1
    try:
        source = _build_source(args, config, logger)
        store = _fetch_store(args.entity, source, logger)
    except BackendClientError:
        logger.exception("Watch of %s failed", args.entity)
        return 1

    def report(_store: EntityStore) -> None:
        if store.error:
            logger.warning("%s: %s", store.label, store.error)
        else:
            logger.info("%s now holds %d rows", store.label, len(store))

    remove_listener = store.add_listener(report)
    store.subscribe_to_realtime()
    if not store.subscribed:
        remove_listener()
        logger.error("Could not subscribe to %s: %s", args.entity, store.error)
        return 1
    stop = threading.Event()
    try:
        stop.wait(args.duration)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        remove_listener()
        store.unsubscribe_from_realtime()
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    config, logger = _prepare(args)
    try:
        source = _build_source(args, config, logger)
        store = _fetch_store("products", source, logger)
    except BackendClientError:
        logger.exception("Inventory export failed")
        return 1

    text = export_inventory_csv(store.records)
    if args.output == "-":
        sys.stdout.write(text)
        return 0
    output = Path(args.output) if args.output else Path(export_filename())
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    logger.info("Exported %d products to %s", len(store), output)
    return 0


def cmd_invoice(args: argparse.Namespace) -> int:
    config, logger = _prepare(args)
    try:
        quantities = _parse_items(args.item or [])
        source = _build_source(args, config, logger)
        store = _fetch_store("products", source, logger)
        lines = lines_from_products(store.records, quantities)
        discount = config.invoice.discount if args.discount is None else args.discount
        totals = compute_invoice(lines, discount=discount, tax_rate=config.invoice.tax_rate)
    except BackendClientError:
        logger.exception("Invoice failed")
        return 1
    except (KeyError, ValueError):
        logger.exception("Invoice failed due to invalid line items")
        return 1

    payload = {
        "lines": [
            {
                "sku_id": line.sku_id,
                "description": line.description,
                "quantity": line.quantity,
                "amount": line.amount,
            }
            for line in lines
        ],
        "totals": totals.to_dict(),
    }
    print(json.dumps(payload, indent=2))
    return 0


def cmd_seed(args: argparse.Namespace) -> int:
    config, logger = _prepare(args)
    if not args.local:
        logger.error("Seeding is only supported against the local backend (--local)")
        return 1
    try:
        source = _build_source(args, config, logger)
        counts = seed_demo_data(source, logger)
    except (BackendClientError, SchemaValidationError, SQLAlchemyError, OSError):
        logger.exception("Seeding failed")
        return 1
    print(json.dumps(counts, indent=2, sort_keys=True))
    return 0


def seed_demo_data(source: DataSource, logger: logging.Logger) -> Dict[str, int]:
    """Insert a small demo catalog through the stores."""

    products = ProductStore(source, logger=logger.getChild("products"))
    materials = RawMaterialStore(source, logger=logger.getChild("raw-materials"))
    batches = ProductionBatchStore(source, logger=logger.getChild("production-batches"))
    usages = ProductMaterialStore(source, logger=logger.getChild("product-materials"))
    for store in (products, materials, batches, usages):
        store.fetch()

    created_products: List[Mapping[str, object]] = []
    for demo in DEMO_PRODUCTS:
        record = dict(demo, sku_id=next_sku_id(products.records), order_index=len(products))
        created_products.append(products.add(record))
    created_materials = [materials.add(dict(demo)) for demo in DEMO_MATERIALS]

    for index, product in enumerate(created_products):
        batches.add(
            {
                "batch_number": f"B-{product['sku_id']}-{len(batches) + 1:03d}",
                "product_id": product["product_id"],
                "status": "pending" if index % 2 else "in_progress",
                "quantity_produced": 0,
                "quantity_wasted": 0,
            }
        )
        for material in created_materials:
            usages.add(
                {
                    "quantity": 1.5,
                    "unit": material.get("unit") or "kg",
                    "product": {"product_id": product["product_id"], "name": product["name"]},
                    "material": {"raw_material_id": material["raw_material_id"], "name": material["name"]},
                }
            )
    return {
        "products": len(products),
        "raw-materials": len(materials),
        "production-batches": len(batches),
        "product-materials": len(usages),
    }


DEMO_PRODUCTS = (
    {
        "name": "Beam A",
        "category": "beams",
        "type": "structural",
        "dimensions": "6000x300x500",
        "weight": 2250,
        "material": "C40 concrete",
        "strength": "40 MPa",
        "design_file": "beam-a.dwg",
        "current_stock": 12,
        "minimum_req_stock": 5,
        "price": 850.0,
        "is_active": True,
        "is_deprecated": False,
    },
    {
        "name": "Hollow Core Slab",
        "category": "slabs",
        "type": "floor",
        "dimensions": "8000x1200x200",
        "weight": 5400,
        "material": "C45 concrete",
        "strength": "45 MPa",
        "design_file": "hcs-200.dwg",
        "current_stock": 3,
        "minimum_req_stock": 4,
        "price": 1240.0,
        "is_active": True,
        "is_deprecated": False,
    },
)

DEMO_MATERIALS = (
    {
        "name": "Portland cement",
        "unit": "kg",
        "cost_per_unit": 0.12,
        "current_stock": 25000,
        "min_required_stock": 5000,
        "supplier": "Northern Cement",
    },
    {
        "name": "Rebar 12mm",
        "unit": "m",
        "cost_per_unit": 1.8,
        "current_stock": 400,
        "min_required_stock": 500,
        "supplier": "SteelWorks",
    },
)


def _parse_items(items: List[str]) -> Dict[str, float]:
    quantities: Dict[str, float] = {}
    for item in items:
        sku_id, sep, quantity = item.partition("=")
        if not sep or not sku_id:
            raise ValueError(f"Invalid item {item!r}; expected SKU=QUANTITY")
        quantities[sku_id.strip()] = float(quantity)
    if not quantities:
        raise ValueError("At least one --item is required")
    return quantities


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="PrecastFlow dashboard runner")
    parser.add_argument(
        "command",
        choices=["fetch", "watch", "export", "invoice", "seed"],
        help="Command to execute",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to dashboard config file (default: %(default)s)",
    )
    parser.add_argument(
        "--local",
        action="store_true",
        help="Use the local SQLite backend instead of the hosted one (not supported by watch)",
    )
    parser.add_argument("--db-path", help="SQLite file for --local (default: $PRECASTFLOW_DB_PATH)")
    parser.add_argument(
        "-e",
        "--entity",
        choices=sorted(STORES),
        default="products",
        help="Entity for fetch and watch (default: %(default)s)",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=60.0,
        help="Seconds to listen for changes in the watch command (default: %(default)s)",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="CSV destination for export; '-' writes to stdout (default: inventory-export-<date>.csv)",
    )
    parser.add_argument(
        "--item",
        action="append",
        help="Invoice line as SKU=QUANTITY; repeat for more lines",
    )
    parser.add_argument("--discount", type=float, help="Override the configured invoice discount")
    args = parser.parse_args(argv)

    if args.command == "fetch":
        return cmd_fetch(args)
    if args.command == "watch":
        return cmd_watch(args)
    if args.command == "export":
        return cmd_export(args)
    if args.command == "invoice":
        return cmd_invoice(args)
    if args.command == "seed":
        return cmd_seed(args)
    parser.error(f"Unknown command {args.command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
