"""Application services."""

from .webhook_service import WebhookIngestionService, WebhookRequest, WebhookResult
from .bulk_sync_service import BulkSyncResult, BulkSyncService, SyncJobRegistry

__all__ = [
    "WebhookIngestionService",
    "WebhookRequest",
    "WebhookResult",
    "BulkSyncResult",
    "BulkSyncService",
    "SyncJobRegistry",
]
