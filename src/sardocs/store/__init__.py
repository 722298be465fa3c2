"""Access to SAR records held in the search index."""

from sardocs.store.record_store import (
    ElasticsearchRecordStore,
    RecordIndexMissingError,
    RecordNotFoundError,
    RecordPage,
    RecordStoreAuthError,
    RecordStoreError,
)

__all__ = [
    "ElasticsearchRecordStore",
    "RecordIndexMissingError",
    "RecordNotFoundError",
    "RecordPage",
    "RecordStoreAuthError",
    "RecordStoreError",
]
