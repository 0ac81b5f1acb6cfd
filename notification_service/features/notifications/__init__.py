"""Multi-tenant notification routing, template versioning and dispatch.

This feature provides:
- Versioned templates with ``{{ variable }}`` substitution and preview
- Per-event routes with quiet hours and one-level fallback chains
- Per-user channel preferences with personal quiet hours
- Fan-out dispatch to pluggable channel adapters (email, sms, webhook, in-app)
- A delivery state machine guarded by optimistic version checks
- A per-user in-app inbox

Architecture:
    - Models: NotificationTemplate, NotificationTemplateVersion, NotificationRoute,
      NotificationPreference, Notification, NotificationDeliveryAttempt,
      NotificationInboxEntry
    - Templates: version arena and sandboxed variable renderer
    - Routing: route resolver, preference filter, quiet-hour math
    - Channels: adapter registry keyed by channel identifier
    - Inbox: materializer and read/archive service
    - Service: dispatch coordinator

Example:
    ```python
    template = await get_notification_template_service().create_template(
        session,
        tenant_id,
        author="user-1",
        data=TemplateCreate(key="welcome", channels=["email"], content="Hi {{name}}"),
    )

    notification = await get_notification_service().send_notification(
        session,
        tenant_id,
        NotificationCreate(
            event_key="user.welcome",
            template_id=template.id,
            channels=["email", "in_app"],
            recipients=[Recipient(user_id="user-2", email="ava@example.com")],
            payload={"name": "Ava"},
        ),
    )
    ```
"""

from notification_service.features.notifications.models import (
    ChannelType,
    InboxSeverity,
    Notification,
    NotificationDeliveryAttempt,
    NotificationInboxEntry,
    NotificationPreference,
    NotificationRoute,
    NotificationStatus,
    NotificationTemplate,
    NotificationTemplateVersion,
)
from notification_service.features.notifications.exceptions import (
    ChannelNotRegisteredError,
    InvalidStatusTransitionError,
    TemplateRenderError,
)

# Services
from notification_service.features.notifications.inbox import InboxService, get_inbox_service
from notification_service.features.notifications.routing import (
    NotificationRoutingService,
    get_notification_routing_service,
)
from notification_service.features.notifications.service import (
    NotificationService,
    get_notification_service,
)
from notification_service.features.notifications.templates import (
    NotificationTemplateService,
    get_notification_template_service,
)

__all__ = [
    "ChannelNotRegisteredError",
    "ChannelType",
    "InboxService",
    "InboxSeverity",
    "InvalidStatusTransitionError",
    "Notification",
    "NotificationDeliveryAttempt",
    "NotificationInboxEntry",
    "NotificationPreference",
    "NotificationRoute",
    "NotificationRoutingService",
    "NotificationService",
    "NotificationStatus",
    "NotificationTemplate",
    "NotificationTemplateService",
    "NotificationTemplateVersion",
    "TemplateRenderError",
    "get_inbox_service",
    "get_notification_routing_service",
    "get_notification_service",
    "get_notification_template_service",
]
