"""Entity schemas and validation helpers."""
from .validator import (
    BATCH_STATUSES,
    DRAFT,
    ENTITIES,
    FULL,
    KEY,
    PARTIAL,
    PRODUCT,
    PRODUCT_MATERIAL,
    PRODUCTION_BATCH,
    RAW_MATERIAL,
    EntitySchema,
    FieldError,
    SchemaValidationError,
    get_entity,
    validate_record,
    validate_records,
)

__all__ = [
    "BATCH_STATUSES",
    "DRAFT",
    "ENTITIES",
    "FULL",
    "KEY",
    "PARTIAL",
    "PRODUCT",
    "PRODUCT_MATERIAL",
    "PRODUCTION_BATCH",
    "RAW_MATERIAL",
    "EntitySchema",
    "FieldError",
    "SchemaValidationError",
    "get_entity",
    "validate_record",
    "validate_records",
]
