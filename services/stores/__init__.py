"""Remote-synchronized entity stores."""
from .base import EntityStore, Listener, StoreStatus
from .cancellation import CancelToken, RequestCancelled
from .entities import ProductMaterialStore, ProductStore, ProductionBatchStore, RawMaterialStore

__all__ = [
    "CancelToken",
    "EntityStore",
    "Listener",
    "ProductMaterialStore",
    "ProductStore",
    "ProductionBatchStore",
    "RawMaterialStore",
    "RequestCancelled",
    "StoreStatus",
]
