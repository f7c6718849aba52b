"""JSON Schema validation for dashboard entities."""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as JsonSchemaValidationError

SCHEMA_DIR = Path(__file__).with_name("schemas")

FULL = "full"
DRAFT = "draft"
PARTIAL = "partial"
KEY = "key"
_MODES = (FULL, DRAFT, PARTIAL, KEY)

BATCH_STATUSES: Tuple[str, ...] = ("pending", "in_progress", "completed", "halted")


@dataclass(frozen=True)
class FieldError:
    """A single constraint violation on one field."""

    field: str
    message: str

    def __str__(self) -> str:
        if not self.field:
            return self.message
        return f"{self.field}: {self.message}"


class SchemaValidationError(ValueError):
    """Raised when a record does not match its entity schema."""

    def __init__(self, entity: str, errors: Iterable[FieldError]) -> None:
        self.entity = entity
        self.errors: List[FieldError] = list(errors)
        summary = "; ".join(str(error) for error in self.errors) or "invalid record"
        super().__init__(f"{entity} failed schema validation: {summary}")

    @property
    def fields(self) -> List[str]:
        return [error.field for error in self.errors]


@dataclass(frozen=True)
class EntitySchema:
    """Schema document plus the bookkeeping stores need for one entity."""

    name: str
    table: str
    primary_key: str
    server_fields: Tuple[str, ...]
    filename: str

    @property
    def document(self) -> Mapping[str, Any]:
        return _load_document(self.filename)

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(self.document.get("properties", {}))

    def derive(self, mode: str) -> Dict[str, Any]:
        """Return the schema document adjusted for a validation mode."""

        if mode not in _MODES:
            raise ValueError(f"Unknown validation mode: {mode}")
        document = dict(self.document)
        required = list(document.get("required", []))
        if mode == DRAFT:
            document["required"] = [name for name in required if name not in self.server_fields]
        elif mode == PARTIAL:
            document["required"] = []
        elif mode == KEY:
            properties = document.get("properties", {})
            document = {
                "$schema": document.get("$schema"),
                "$defs": document.get("$defs", {}),
                "type": "object",
                "properties": {self.primary_key: properties[self.primary_key]},
                "required": [self.primary_key],
            }
        return document


PRODUCT = EntitySchema(
    name="product",
    table="products",
    primary_key="sku_id",
    server_fields=("product_id", "created_at", "updated_at"),
    filename="product.schema.json",
)
RAW_MATERIAL = EntitySchema(
    name="raw_material",
    table="raw_materials",
    primary_key="raw_material_id",
    server_fields=("raw_material_id", "created_at", "updated_at"),
    filename="raw_material.schema.json",
)
PRODUCTION_BATCH = EntitySchema(
    name="production_batch",
    table="production_batches",
    primary_key="batch_number",
    server_fields=("batch_id", "created_at", "updated_at"),
    filename="production_batch.schema.json",
)
PRODUCT_MATERIAL = EntitySchema(
    name="product_material",
    table="precast_product_materials",
    primary_key="id",
    server_fields=("id", "created_at"),
    filename="product_material.schema.json",
)

ENTITIES: Dict[str, EntitySchema] = {
    entity.name: entity for entity in (PRODUCT, RAW_MATERIAL, PRODUCTION_BATCH, PRODUCT_MATERIAL)
}


def get_entity(entity: str | EntitySchema) -> EntitySchema:
    if isinstance(entity, EntitySchema):
        return entity
    try:
        return ENTITIES[entity]
    except KeyError:
        raise ValueError(f"Unknown entity: {entity}") from None


def validate_record(
    entity: str | EntitySchema,
    record: Any,
    mode: str = FULL,
) -> Dict[str, Any]:
    """Validate ``record`` and return a copy limited to declared fields."""

    spec = get_entity(entity)
    if not isinstance(record, Mapping):
        raise SchemaValidationError(
            spec.name, [FieldError("", f"expected an object, got {type(record).__name__}")]
        )
    errors = _collect_errors(spec, mode, record)
    if errors:
        raise SchemaValidationError(spec.name, errors)
    declared = spec.fields
    return {key: value for key, value in record.items() if key in declared}


def validate_records(
    entity: str | EntitySchema,
    records: Any,
    mode: str = FULL,
) -> List[Dict[str, Any]]:
    """Validate an array of records; any invalid row rejects the whole array."""

    spec = get_entity(entity)
    if not isinstance(records, Sequence) or isinstance(records, (str, bytes)):
        raise SchemaValidationError(
            spec.name, [FieldError("", f"expected an array, got {type(records).__name__}")]
        )
    validated: List[Dict[str, Any]] = []
    errors: List[FieldError] = []
    for index, record in enumerate(records):
        try:
            validated.append(validate_record(spec, record, mode))
        except SchemaValidationError as exc:
            for error in exc.errors:
                field = f"[{index}].{error.field}" if error.field else f"[{index}]"
                errors.append(FieldError(field, error.message))
    if errors:
        raise SchemaValidationError(spec.name, errors)
    return validated


def _collect_errors(spec: EntitySchema, mode: str, record: Mapping[str, Any]) -> List[FieldError]:
    validator = _validator(spec.name, mode)
    seen: Dict[Tuple[str, str], FieldError] = {}
    errors = validator.iter_errors(dict(record))
    for error in sorted(errors, key=lambda e: [str(part) for part in e.absolute_path]):
        for field_error in _to_field_errors(error):
            seen.setdefault((field_error.field, field_error.message), field_error)
    return list(seen.values())


def _to_field_errors(error: JsonSchemaValidationError) -> List[FieldError]:
    path = ".".join(str(part) for part in error.absolute_path)
    if error.validator == "required":
        instance = error.instance if isinstance(error.instance, Mapping) else {}
        missing = [name for name in error.validator_value if name not in instance]
        return [FieldError(_join(path, name), "is required") for name in missing]
    message = error.message
    if isinstance(error.schema, Mapping) and error.schema.get("x-message"):
        message = str(error.schema["x-message"])
    return [FieldError(path, message)]


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


@lru_cache(maxsize=None)
def _load_document(filename: str) -> Mapping[str, Any]:
    with (SCHEMA_DIR / filename).open("r", encoding="utf-8") as handle:
        return json.load(handle)


@lru_cache(maxsize=None)
def _validator(entity: str, mode: str) -> Draft202012Validator:
    document = ENTITIES[entity].derive(mode)
    Draft202012Validator.check_schema(document)
    return Draft202012Validator(document)


__all__ = [
    "BATCH_STATUSES",
    "DRAFT",
    "ENTITIES",
    "FULL",
    "KEY",
    "PARTIAL",
    "PRODUCT",
    "PRODUCTION_BATCH",
    "PRODUCT_MATERIAL",
    "RAW_MATERIAL",
    "EntitySchema",
    "FieldError",
    "SchemaValidationError",
    "get_entity",
    "validate_record",
    "validate_records",
]
