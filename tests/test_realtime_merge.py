"""Tests for merging change events into the stores."""
from __future__ import annotations

from conftest import MATERIAL_ID, PRODUCT_ID, TIMESTAMP, USAGE_ID, FakeSource, make_batch, make_product
from packages.backend_client import DELETE, INSERT, UPDATE, BackendClientError, ChangeEvent
from services.stores import ProductMaterialStore, ProductStore, ProductionBatchStore


def _subscribed_products(*rows) -> tuple[FakeSource, ProductStore]:
    source = FakeSource({"products": list(rows)})
    store = ProductStore(source)
    store.fetch()
    store.subscribe_to_realtime()
    return source, store


def test_insert_event_appends_valid_record() -> None:
    source, store = _subscribed_products()

    source.emit(ChangeEvent(INSERT, "products", new=make_product()))

    assert store.keys() == ["SKU0001"]
    assert store.error is None


def test_insert_event_for_existing_key_replaces_it() -> None:
    source, store = _subscribed_products(make_product())

    source.emit(ChangeEvent(INSERT, "products", new=make_product(name="Beam B")))

    assert len(store) == 1
    assert store.get("SKU0001")["name"] == "Beam B"


def test_update_event_merges_over_existing_record() -> None:
    source, store = _subscribed_products(make_product(name="Beam A", current_stock=10))

    source.emit(ChangeEvent(UPDATE, "products", new={"sku_id": "SKU0001", "current_stock": 0}))

    record = store.get("SKU0001")
    assert record["current_stock"] == 0
    assert record["name"] == "Beam A"


def test_update_event_for_unknown_key_is_ignored() -> None:
    source, store = _subscribed_products(make_product())
    calls = []
    store.add_listener(calls.append)

    source.emit(ChangeEvent(UPDATE, "products", new=make_product("SKU0005")))

    assert store.keys() == ["SKU0001"]
    assert calls == []


def test_delete_event_removes_by_primary_key() -> None:
    source, store = _subscribed_products(make_product())

    source.emit(ChangeEvent(DELETE, "products", old={"sku_id": "SKU0001"}))

    assert len(store) == 0


def test_invalid_event_sets_error_and_keeps_records() -> None:
    source, store = _subscribed_products(make_product())

    source.emit(ChangeEvent(INSERT, "products", new=make_product("SKU0002", weight=-1)))

    assert store.keys() == ["SKU0001"]
    assert store.error.startswith("Invalid real-time data received")

    source.emit(ChangeEvent(INSERT, "products", new=make_product("SKU0002")))

    assert store.keys() == ["SKU0001", "SKU0002"]
    assert store.get("SKU0002")["weight"] == 2250


def test_malformed_delete_event_sets_error() -> None:
    source, store = _subscribed_products(make_product())

    source.emit(ChangeEvent(DELETE, "products", old={}))

    assert len(store) == 1
    assert "sku_id" in store.error


def test_unknown_event_type_is_ignored() -> None:
    source, store = _subscribed_products(make_product())

    store.handle_change(ChangeEvent("TRUNCATE", "products"))

    assert len(store) == 1
    assert store.error is None


def test_subscribe_is_idempotent_and_unsubscribe_closes_channel() -> None:
    source, store = _subscribed_products()

    store.subscribe_to_realtime()
    assert len(source.channels) == 1

    store.unsubscribe_from_realtime()
    assert source.removed == source.channels
    assert store.subscribed is False
    source.emit(ChangeEvent(INSERT, "products", new=make_product()))
    assert len(store) == 0


def test_subscribe_failure_sets_error() -> None:
    source = FakeSource()
    source.fail_with = BackendClientError("realtime unavailable")
    store = ProductStore(source)

    store.subscribe_to_realtime()

    assert store.subscribed is False
    assert store.error == "realtime unavailable"


def test_each_store_instance_owns_its_channel() -> None:
    source = FakeSource({"products": []})
    first = ProductStore(source)
    second = ProductStore(source)
    first.subscribe_to_realtime()
    second.subscribe_to_realtime()

    source.emit(ChangeEvent(INSERT, "products", new=make_product()))

    assert len(source.channels) == 2
    assert len(first) == 1
    assert len(second) == 1


def test_batch_status_update_event() -> None:
    source = FakeSource({"production_batches": [make_batch()]})
    store = ProductionBatchStore(source)
    store.fetch()
    store.subscribe_to_realtime()

    source.emit(ChangeEvent(UPDATE, "production_batches", new={"batch_number": "B-001", "status": "completed"}))
    assert store.get("B-001")["status"] == "completed"

    source.emit(ChangeEvent(UPDATE, "production_batches", new={"batch_number": "B-001", "status": "done"}))
    assert store.get("B-001")["status"] == "completed"
    assert "Status must be one of" in store.error


def test_product_material_events_use_flat_foreign_keys() -> None:
    source = FakeSource({"precast_product_materials": []})
    store = ProductMaterialStore(source)
    store.fetch()
    store.subscribe_to_realtime()

    source.emit(
        ChangeEvent(
            INSERT,
            "precast_product_materials",
            new={
                "id": USAGE_ID,
                "quantity": 2.5,
                "unit": "kg",
                "created_at": TIMESTAMP,
                "product_id": PRODUCT_ID,
                "material_id": MATERIAL_ID,
            },
        )
    )

    record = store.get(USAGE_ID)
    assert record["product"] == {"product_id": PRODUCT_ID}
    assert record["material"] == {"raw_material_id": MATERIAL_ID}


def test_product_material_fetch_collapses_embedded_lists() -> None:
    row = {
        "id": USAGE_ID,
        "quantity": 1,
        "unit": "m",
        "created_at": TIMESTAMP,
        "product": [{"product_id": PRODUCT_ID, "name": "Beam A"}],
        "material": {"raw_material_id": MATERIAL_ID, "name": "Rebar"},
    }
    source = FakeSource({"precast_product_materials": [row]})
    store = ProductMaterialStore(source)

    store.fetch()

    assert store.get(USAGE_ID)["product"]["name"] == "Beam A"
    assert "material:material_id" in source.select_calls[0][1]


def _usage_row(**overrides) -> dict:
    row = {
        "id": USAGE_ID,
        "quantity": 1,
        "unit": "kg",
        "created_at": TIMESTAMP,
        "product": {"product_id": PRODUCT_ID, "name": "Beam A"},
        "material": {"raw_material_id": MATERIAL_ID, "name": "Rebar"},
    }
    row.update(overrides)
    return row


def test_flat_update_event_keeps_embedded_names() -> None:
    source = FakeSource({"precast_product_materials": [_usage_row()]})
    store = ProductMaterialStore(source)
    store.fetch()
    store.subscribe_to_realtime()

    source.emit(
        ChangeEvent(
            UPDATE,
            "precast_product_materials",
            new={"id": USAGE_ID, "quantity": 3, "product_id": PRODUCT_ID, "material_id": MATERIAL_ID},
        )
    )

    record = store.get(USAGE_ID)
    assert record["quantity"] == 3
    assert record["product"] == {"product_id": PRODUCT_ID, "name": "Beam A"}
    assert record["material"] == {"raw_material_id": MATERIAL_ID, "name": "Rebar"}
    assert store.error is None


def test_update_event_with_new_foreign_key_drops_stale_name() -> None:
    other_product = "6f1f8a52-3c1e-4a57-9d0b-000000000002"
    source = FakeSource({"precast_product_materials": [_usage_row()]})
    store = ProductMaterialStore(source)
    store.fetch()
    store.subscribe_to_realtime()

    source.emit(
        ChangeEvent(
            UPDATE,
            "precast_product_materials",
            new={"id": USAGE_ID, "product_id": other_product, "material_id": MATERIAL_ID},
        )
    )

    record = store.get(USAGE_ID)
    assert record["product"] == {"product_id": other_product}
    assert record["material"]["name"] == "Rebar"


def test_product_material_writes_keep_names_and_request_embeds() -> None:
    def flatten(row: dict) -> dict:
        return {key: value for key, value in row.items() if key not in ("product", "material")}

    source = FakeSource({"precast_product_materials": []})
    source.insert_response = flatten
    source.update_response = flatten
    store = ProductMaterialStore(source)
    store.fetch()

    created = store.add(_usage_row())
    updated = store.update(USAGE_ID, {"quantity": 4})

    assert created["product"]["name"] == "Beam A"
    assert updated["quantity"] == 4
    assert updated["material"] == {"raw_material_id": MATERIAL_ID, "name": "Rebar"}
    assert source.write_columns == [store.columns, store.columns]
