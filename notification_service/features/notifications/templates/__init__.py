"""Versioned template store and variable renderer.

Templates hold a ``current_version`` pointer into an append-only arena of
``NotificationTemplateVersion`` rows. Rendering substitutes ``{{ path }}``
tokens (dotted and bracket paths) through sandboxed Jinja2 expressions.
"""

from __future__ import annotations

from notification_service.features.notifications.templates.renderer import (
    RenderedContent,
    TemplateRenderer,
    extract_variables,
    get_template_renderer,
    references_recipient,
)
from notification_service.features.notifications.templates.service import (
    NotificationTemplateService,
    get_notification_template_service,
)

__all__ = [
    "NotificationTemplateService",
    "RenderedContent",
    "TemplateRenderer",
    "extract_variables",
    "get_notification_template_service",
    "get_template_renderer",
    "references_recipient",
]
