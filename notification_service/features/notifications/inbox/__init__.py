"""Per-user in-app inbox: materialization and read/archive state."""

from __future__ import annotations

from notification_service.features.notifications.inbox.materializer import (
    InboxMaterializer,
    inbox_severity,
)
from notification_service.features.notifications.inbox.service import (
    InboxService,
    get_inbox_service,
)

__all__ = [
    "InboxMaterializer",
    "InboxService",
    "get_inbox_service",
    "inbox_severity",
]
