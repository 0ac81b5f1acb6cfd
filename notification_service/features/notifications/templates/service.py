"""Service layer for versioned notification templates."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from notification_service.core.database import SearchResult, flush_or_conflict
from notification_service.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
)
from notification_service.core.services.base import BaseService
from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.metrics import (
    notification_template_versions_total,
)
from notification_service.features.notifications.models import (
    NotificationTemplate,
    NotificationTemplateVersion,
)
from notification_service.features.notifications.repository import (
    NotificationTemplateRepository,
    NotificationTemplateVersionRepository,
    get_notification_template_repository,
    get_notification_template_version_repository,
)
from notification_service.features.notifications.schemas import (
    TemplateCreate,
    TemplatePreviewRequest,
    TemplatePreviewResponse,
    TemplateUpdate,
    TemplateVersionCreate,
)
from notification_service.features.notifications.templates.renderer import (
    TemplateRenderer,
    extract_variables,
    get_template_renderer,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.core.settings import NotificationSettings

INITIAL_VERSION_SUMMARY = "Initial version"
UPDATED_VERSION_SUMMARY = "Updated template version"
NEW_VERSION_SUMMARY = "New version created"


class NotificationTemplateService(BaseService):
    """Template store: CRUD, version arena and preview.

    Versions are immutable rows addressed by ``(template_id, version)``.
    Appending a version bumps ``current_version`` on the template in the same
    flush; the template's optimistic lock and the unique version constraint
    together make concurrent editors fail with ``ConcurrencyConflictException``
    instead of producing a duplicate version number.
    """

    def __init__(
        self,
        repository: NotificationTemplateRepository | None = None,
        version_repository: NotificationTemplateVersionRepository | None = None,
        renderer: TemplateRenderer | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        """Initialize with repositories and renderer.

        Args:
            repository: Optional template repository (defaults to singleton)
            version_repository: Optional version repository (defaults to singleton)
            renderer: Optional renderer (defaults to singleton)
            settings: Optional settings (defaults to cached loader)
        """
        super().__init__()
        self._repository = repository or get_notification_template_repository()
        self._versions = version_repository or get_notification_template_version_repository()
        self._renderer = renderer or get_template_renderer()
        self._settings = settings or get_notification_settings()

    async def create_template(
        self,
        session: AsyncSession,
        tenant_id: str,
        author: str | None,
        data: TemplateCreate,
    ) -> NotificationTemplate:
        """Create a template together with version 1.

        Args:
            session: Database session
            tenant_id: Owning tenant
            author: User creating the template
            data: Template definition

        Returns:
            The created template (``current_version == 1``)

        Raises:
            ConflictException: If the tenant already has a template with this key
        """
        key = data.key.strip().lower()
        if await self._repository.get_by_key(session, tenant_id, key):
            raise ConflictException(
                detail=f"Template with key '{key}' already exists",
                type="template-key-conflict",
                extra={"key": key},
            )

        template = NotificationTemplate(
            tenant_id=tenant_id,
            key=key,
            name=data.name or key,
            description=data.description,
            category=data.category,
            tags=list(data.tags),
            channels=list(dict.fromkeys(data.channels)),
            default_subject=data.subject,
            sample_payload=data.sample_payload,
            current_version=1,
            created_by=author,
            updated_by=author,
        )
        session.add(template)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ConflictException(
                detail=f"Template with key '{key}' already exists",
                type="template-key-conflict",
                extra={"key": key},
            ) from exc

        session.add(
            self._build_version(
                template,
                version=1,
                content=data.content,
                subject=data.subject,
                channels=template.channels,
                change_summary=data.change_summary or INITIAL_VERSION_SUMMARY,
                author=author,
            ),
        )
        await flush_or_conflict(session, entity="NotificationTemplate", entity_id=template.id)
        notification_template_versions_total.inc()

        self.logger.info(
            "Notification template created",
            extra={"tenant_id": tenant_id, "template_id": str(template.id), "key": key},
        )
        return template

    async def get_template(
        self,
        session: AsyncSession,
        tenant_id: str,
        template_id: UUID,
    ) -> NotificationTemplate:
        """Get a template of the tenant.

        Raises:
            NotFoundException: If the template does not exist for the tenant
        """
        template = await self._repository.get_for_tenant(session, tenant_id, template_id)
        if template is None:
            raise NotFoundException(
                detail="Notification template not found",
                type="template-not-found",
                extra={"template_id": str(template_id)},
            )
        return template

    async def list_templates(
        self,
        session: AsyncSession,
        tenant_id: str,
        *,
        search: str | None = None,
        channel: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> SearchResult[NotificationTemplate]:
        """List templates with optional name/key search and channel filter."""
        size, offset = self.page_window(
            page,
            limit,
            default_limit=self._settings.default_page_size,
            max_limit=self._settings.max_page_size,
        )
        return await self._repository.search_templates(
            session,
            tenant_id,
            search=search,
            channel=channel,
            limit=size,
            offset=offset,
        )

    async def update_template(
        self,
        session: AsyncSession,
        tenant_id: str,
        template_id: UUID,
        editor: str | None,
        patch: TemplateUpdate,
    ) -> NotificationTemplate:
        """Apply a patch, appending a version when content fields are present.

        Metadata (name, description, category, tags, sample payload) changes in
        place. If ``content``, ``subject`` or ``channels`` is supplied, a new
        version is appended even if it matches the current one; omitted
        content fields carry over from the current version.

        Raises:
            NotFoundException: If the template does not exist for the tenant
            ConcurrencyConflictException: If another writer changed the template
        """
        template = await self.get_template(session, tenant_id, template_id)
        current = None
        if patch.creates_version:
            current = await self._require_version(session, template, template.current_version)

        for field in ("name", "description", "category", "sample_payload"):
            value = getattr(patch, field)
            if value is not None:
                setattr(template, field, value)
        if patch.tags is not None:
            template.tags = list(patch.tags)
        template.updated_by = editor

        if current is not None:
            await self._append_version(
                session,
                template,
                content=patch.content if patch.content is not None else current.content,
                subject=patch.subject if patch.subject is not None else current.subject,
                channels=patch.channels if patch.channels is not None else current.channels,
                change_summary=patch.change_summary or UPDATED_VERSION_SUMMARY,
                author=editor,
            )
        else:
            await flush_or_conflict(session, entity="NotificationTemplate", entity_id=template.id)

        self._lazy.debug(
            lambda: f"Template {template.id} updated (version {template.current_version})"
        )
        return template

    async def create_version(
        self,
        session: AsyncSession,
        tenant_id: str,
        template_id: UUID,
        editor: str | None,
        data: TemplateVersionCreate,
    ) -> NotificationTemplateVersion:
        """Append a version explicitly, regardless of duplication.

        Raises:
            BadRequestException: If ``content`` is empty
            NotFoundException: If the template does not exist for the tenant
            ConcurrencyConflictException: If another writer appended first
        """
        if not data.content or not data.content.strip():
            raise BadRequestException(
                detail="Template content is required to create a version",
                extra={"template_id": str(template_id)},
            )

        template = await self.get_template(session, tenant_id, template_id)
        template.updated_by = editor
        return await self._append_version(
            session,
            template,
            content=data.content,
            subject=data.subject,
            channels=data.channels if data.channels is not None else template.channels,
            change_summary=data.change_summary or NEW_VERSION_SUMMARY,
            author=editor,
        )

    async def list_versions(
        self,
        session: AsyncSession,
        tenant_id: str,
        template_id: UUID,
    ) -> Sequence[NotificationTemplateVersion]:
        """List all versions of a template, oldest first."""
        template = await self.get_template(session, tenant_id, template_id)
        return await self._versions.list_for_template(session, template.id)

    async def get_version(
        self,
        session: AsyncSession,
        tenant_id: str,
        template_id: UUID,
        version: int,
    ) -> NotificationTemplateVersion:
        """Get one version of a template.

        Raises:
            NotFoundException: If the template or the version does not exist
        """
        template = await self.get_template(session, tenant_id, template_id)
        return await self._require_version(session, template, version)

    async def delete_template(
        self,
        session: AsyncSession,
        tenant_id: str,
        template_id: UUID,
    ) -> None:
        """Delete a template and all of its versions."""
        template = await self.get_template(session, tenant_id, template_id)
        removed = await self._versions.delete_for_template(session, template.id)
        await self._repository.delete(session, template)

        self.logger.info(
            "Notification template deleted",
            extra={"tenant_id": tenant_id, "template_id": str(template_id), "versions": removed},
        )

    async def preview_template(
        self,
        session: AsyncSession,
        tenant_id: str,
        request: TemplatePreviewRequest,
    ) -> TemplatePreviewResponse:
        """Render a stored template's current version, or ad-hoc content.

        Args:
            session: Database session
            tenant_id: Owning tenant
            request: Template reference or raw content, plus render data

        Returns:
            Rendered content, rendered subject and the variable list

        Raises:
            NotFoundException: If the referenced template does not exist
            BadRequestException: If no content is available, or rendering fails
        """
        subject = request.subject
        content = request.content
        variables: list[str] = []

        if request.template_id is not None:
            template = await self.get_template(session, tenant_id, request.template_id)
            current = await self._require_version(session, template, template.current_version)
            subject = current.subject or template.default_subject
            content = current.content
            variables = list(current.variables)

        if not content:
            raise BadRequestException(detail="Template content is required for preview")

        if not variables:
            variables = extract_variables(content)

        rendered = self._renderer.render_content(content, subject, request.data)
        return TemplatePreviewResponse(
            content=rendered.body,
            subject=rendered.subject,
            variables=variables,
        )

    async def _append_version(
        self,
        session: AsyncSession,
        template: NotificationTemplate,
        *,
        content: str,
        subject: str | None,
        channels: list[str],
        change_summary: str,
        author: str | None,
    ) -> NotificationTemplateVersion:
        next_version = template.current_version + 1
        channels = list(dict.fromkeys(channels))

        template.current_version = next_version
        template.channels = channels
        version = self._build_version(
            template,
            version=next_version,
            content=content,
            subject=subject,
            channels=channels,
            change_summary=change_summary,
            author=author,
        )
        session.add(version)
        await flush_or_conflict(session, entity="NotificationTemplate", entity_id=template.id)
        notification_template_versions_total.inc()

        self.logger.info(
            "Template version appended",
            extra={
                "tenant_id": template.tenant_id,
                "template_id": str(template.id),
                "version": next_version,
            },
        )
        return version

    @staticmethod
    def _build_version(
        template: NotificationTemplate,
        *,
        version: int,
        content: str,
        subject: str | None,
        channels: list[str],
        change_summary: str,
        author: str | None,
    ) -> NotificationTemplateVersion:
        return NotificationTemplateVersion(
            tenant_id=template.tenant_id,
            template_id=template.id,
            version=version,
            content=content,
            subject=subject,
            channels=list(channels),
            variables=extract_variables(content),
            change_summary=change_summary,
            created_by=author,
        )

    async def _require_version(
        self,
        session: AsyncSession,
        template: NotificationTemplate,
        version: int,
    ) -> NotificationTemplateVersion:
        item = await self._versions.get_version(session, template.id, version)
        if item is None:
            raise NotFoundException(
                detail="Template version not found",
                type="template-version-not-found",
                extra={"template_id": str(template.id), "version": version},
            )
        return item


# Singleton instance
_template_service: NotificationTemplateService | None = None


def get_notification_template_service() -> NotificationTemplateService:
    """Get NotificationTemplateService singleton instance."""
    global _template_service
    if _template_service is None:
        _template_service = NotificationTemplateService()
    return _template_service


__all__ = [
    "NotificationTemplateService",
    "get_notification_template_service",
]
