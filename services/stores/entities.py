"""Concrete stores for the dashboard tables."""
from __future__ import annotations

from typing import Any, Dict, Mapping

from packages.schema import PRODUCT, PRODUCT_MATERIAL, PRODUCTION_BATCH, RAW_MATERIAL

from .base import EntityStore


class ProductStore(EntityStore):
    """Products keyed by ``sku_id``."""

    entity = PRODUCT
    label = "products"

    def serialize(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        # product_material is a relation, not a products column
        payload = dict(record)
        payload.pop("product_material", None)
        return payload


class RawMaterialStore(EntityStore):
    """Raw materials keyed by ``raw_material_id``."""

    entity = RAW_MATERIAL
    label = "raw materials"


class ProductionBatchStore(EntityStore):
    """Production batches keyed by ``batch_number``."""

    entity = PRODUCTION_BATCH
    label = "production batches"


class ProductMaterialStore(EntityStore):
    """Material usage per product, with denormalized product and material."""

    entity = PRODUCT_MATERIAL
    label = "product materials"
    columns = (
        "id,quantity,unit,created_at,"
        "product:product_id(product_id,name),"
        "material:material_id(raw_material_id,name)"
    )

    def normalize(self, payload: Any) -> Any:
        if not isinstance(payload, Mapping):
            return payload
        row = dict(payload)
        product = _first(row.get("product"))
        material = _first(row.get("material"))
        product_id = row.pop("product_id", None)
        material_id = row.pop("material_id", None)
        if product is None and product_id is not None:
            product = {"product_id": product_id}
        if material is None and material_id is not None:
            material = {"raw_material_id": material_id}
        if product is not None:
            row["product"] = product
        if material is not None:
            row["material"] = material
        return row

    def merge(self, existing: Mapping[str, Any], payload: Mapping[str, Any]) -> Dict[str, Any]:
        # flat rows only carry the foreign key; keep the loaded name while it still matches
        merged = super().merge(existing, payload)
        for relation, key in (("product", "product_id"), ("material", "raw_material_id")):
            known = existing.get(relation)
            incoming = payload.get(relation)
            if isinstance(known, Mapping) and isinstance(incoming, Mapping) and known.get(key) == incoming.get(key):
                merged[relation] = {**known, **incoming}
        return merged

    def serialize(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        payload = dict(record)
        product = payload.pop("product", None)
        material = payload.pop("material", None)
        if isinstance(product, Mapping):
            payload["product_id"] = product.get("product_id")
        if isinstance(material, Mapping):
            payload["material_id"] = material.get("raw_material_id")
        return payload


def _first(value: Any) -> Any:
    """Embedded relations arrive either as an object or a one-element list."""

    if isinstance(value, list):
        return dict(value[0]) if value and isinstance(value[0], Mapping) else None
    if isinstance(value, Mapping):
        return dict(value)
    return None


__all__ = ["ProductMaterialStore", "ProductStore", "ProductionBatchStore", "RawMaterialStore"]
