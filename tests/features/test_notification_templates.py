"""Feature tests for versioned notification templates."""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from notification_service.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
)
from notification_service.features.notifications import NotificationTemplateService
from notification_service.features.notifications.exceptions import TemplateRenderError
from notification_service.features.notifications.schemas import (
    TemplateCreate,
    TemplatePreviewRequest,
    TemplateUpdate,
    TemplateVersionCreate,
)

TENANT = "acme"


def welcome_template(**overrides: object) -> TemplateCreate:
    data: dict[str, object] = {
        "key": "welcome",
        "channels": ["email", "in_app"],
        "content": "Hi {{name}}, your order {{ order.id }} is ready",
        "subject": "Welcome {{name}}",
    }
    data.update(overrides)
    return TemplateCreate(**data)


class TestCreateTemplate:
    """Tests for template creation."""

    async def test_creates_first_version(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, "author-1", welcome_template())

        assert template.current_version == 1
        assert template.name == "welcome"
        assert template.channels == ["email", "in_app"]

        versions = await template_service.list_versions(db_session, TENANT, template.id)
        assert [v.version for v in versions] == [1]
        assert versions[0].change_summary == "Initial version"
        assert versions[0].variables == ["name", "order.id"]
        assert versions[0].created_by == "author-1"

    async def test_key_is_normalized(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(
            db_session, TENANT, None, welcome_template(key="  Order.Shipped ")
        )

        assert template.key == "order.shipped"

    async def test_duplicate_key_conflicts(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        await template_service.create_template(db_session, TENANT, None, welcome_template())

        with pytest.raises(ConflictException) as exc_info:
            await template_service.create_template(db_session, TENANT, None, welcome_template(key="WELCOME"))

        assert exc_info.value.type == "template-key-conflict"

    async def test_same_key_in_other_tenant(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        first = await template_service.create_template(db_session, TENANT, None, welcome_template())
        second = await template_service.create_template(db_session, "globex", None, welcome_template())

        assert first.id != second.id

    async def test_other_tenant_cannot_read(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, None, welcome_template())

        with pytest.raises(NotFoundException) as exc_info:
            await template_service.get_template(db_session, "globex", template.id)

        assert exc_info.value.type == "template-not-found"

    async def test_welcome_scenario(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(
            db_session,
            TENANT,
            None,
            TemplateCreate(key="welcome", channels=["email"], content="Hi {{name}}"),
        )

        versions = await template_service.list_versions(db_session, TENANT, template.id)
        preview = await template_service.preview_template(
            db_session, TENANT, TemplatePreviewRequest(template_id=template.id, data={"name": "Ava"})
        )

        assert template.current_version == 1
        assert versions[0].variables == ["name"]
        assert preview.content == "Hi Ava"
        assert len(versions) == template.current_version


class TestTemplateVersions:
    """Tests for the append-only version history."""

    async def test_metadata_patch_keeps_version(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, None, welcome_template())

        updated = await template_service.update_template(
            db_session,
            TENANT,
            template.id,
            "editor-1",
            TemplateUpdate(name="Welcome email", tags=["onboarding"]),
        )

        assert updated.current_version == 1
        assert updated.name == "Welcome email"
        assert updated.tags == ["onboarding"]
        assert updated.updated_by == "editor-1"

    async def test_content_patch_appends_version(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, None, welcome_template())

        await template_service.update_template(
            db_session, TENANT, template.id, "editor-1", TemplateUpdate(content="Hello {{ first_name }}")
        )

        current = await template_service.get_version(db_session, TENANT, template.id, 2)
        assert template.current_version == 2
        assert current.content == "Hello {{ first_name }}"
        assert current.subject == "Welcome {{name}}"
        assert current.variables == ["first_name"]
        assert current.change_summary == "Updated template version"

        original = await template_service.get_version(db_session, TENANT, template.id, 1)
        assert original.content == "Hi {{name}}, your order {{ order.id }} is ready"

    async def test_identical_content_still_appends(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, None, welcome_template())
        same = TemplateUpdate(content="Hi {{name}}, your order {{ order.id }} is ready")

        await template_service.update_template(db_session, TENANT, template.id, None, same)
        await template_service.update_template(db_session, TENANT, template.id, None, same)

        versions = await template_service.list_versions(db_session, TENANT, template.id)
        assert [v.version for v in versions] == [1, 2, 3]

    async def test_channel_patch_updates_header(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, None, welcome_template())

        await template_service.update_template(
            db_session, TENANT, template.id, None, TemplateUpdate(channels=["sms", "sms"])
        )

        assert template.channels == ["sms"]
        assert template.current_version == 2

    async def test_explicit_version(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, None, welcome_template())

        version = await template_service.create_version(
            db_session,
            TENANT,
            template.id,
            "editor-2",
            TemplateVersionCreate(content="Bye {{name}}"),
        )

        assert version.version == 2
        assert version.change_summary == "New version created"
        assert version.channels == ["email", "in_app"]
        assert template.current_version == 2

    @pytest.mark.parametrize("content", ["", "   "])
    async def test_explicit_version_requires_content(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
        content: str,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, None, welcome_template())

        with pytest.raises(BadRequestException):
            await template_service.create_version(
                db_session, TENANT, template.id, None, TemplateVersionCreate(content=content)
            )

        assert template.current_version == 1

    async def test_unknown_version(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, None, welcome_template())

        with pytest.raises(NotFoundException) as exc_info:
            await template_service.get_version(db_session, TENANT, template.id, 7)

        assert exc_info.value.type == "template-version-not-found"


class TestPreviewAndListing:
    """Tests for preview, listing and deletion."""

    async def test_preview_stored_template(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, None, welcome_template())

        preview = await template_service.preview_template(
            db_session,
            TENANT,
            TemplatePreviewRequest(template_id=template.id, data={"name": "Ava", "order": {"id": 42}}),
        )

        assert preview.content == "Hi Ava, your order 42 is ready"
        assert preview.subject == "Welcome Ava"
        assert preview.variables == ["name", "order.id"]

    async def test_preview_adhoc_content(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        preview = await template_service.preview_template(
            db_session,
            TENANT,
            TemplatePreviewRequest(content="Total: {{ total }}{{ missing }}", data={"total": 9.5}),
        )

        assert preview.content == "Total: 9.5"
        assert preview.subject is None
        assert preview.variables == ["total", "missing"]

    async def test_preview_without_content(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        with pytest.raises(BadRequestException):
            await template_service.preview_template(db_session, TENANT, TemplatePreviewRequest())

    async def test_preview_malformed_content(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        with pytest.raises(TemplateRenderError):
            await template_service.preview_template(
                db_session, TENANT, TemplatePreviewRequest(content="Hello {{ name")
            )

    async def test_preview_unknown_template(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        with pytest.raises(NotFoundException):
            await template_service.preview_template(
                db_session, TENANT, TemplatePreviewRequest(template_id=uuid4())
            )

    async def test_list_filters(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        await template_service.create_template(db_session, TENANT, None, welcome_template())
        await template_service.create_template(
            db_session,
            TENANT,
            None,
            welcome_template(key="password.reset", name="Password reset", channels=["sms"]),
        )
        await template_service.create_template(db_session, "globex", None, welcome_template())

        everything = await template_service.list_templates(db_session, TENANT)
        by_search = await template_service.list_templates(db_session, TENANT, search="PASSWORD")
        by_channel = await template_service.list_templates(db_session, TENANT, channel="email")

        assert everything.total == 2
        assert [t.key for t in by_search.items] == ["password.reset"]
        assert [t.key for t in by_channel.items] == ["welcome"]

    @pytest.mark.parametrize("search", ["%", "_", "wel_ome"])
    async def test_search_matches_wildcards_literally(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
        search: str,
    ) -> None:
        await template_service.create_template(db_session, TENANT, None, welcome_template())

        result = await template_service.list_templates(db_session, TENANT, search=search)

        assert result.total == 0

    async def test_list_pagination(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        for index in range(3):
            await template_service.create_template(db_session, TENANT, None, welcome_template(key=f"t{index}"))

        result = await template_service.list_templates(db_session, TENANT, page=2, limit=2)

        assert result.total == 3
        assert len(result.items) == 1
        assert result.page == 2
        assert result.has_next is False

    async def test_delete_removes_versions(
        self,
        db_session: AsyncSession,
        template_service: NotificationTemplateService,
    ) -> None:
        template = await template_service.create_template(db_session, TENANT, None, welcome_template())
        await template_service.create_version(
            db_session, TENANT, template.id, None, TemplateVersionCreate(content="v2")
        )

        await template_service.delete_template(db_session, TENANT, template.id)

        with pytest.raises(NotFoundException):
            await template_service.get_template(db_session, TENANT, template.id)
        with pytest.raises(NotFoundException):
            await template_service.list_versions(db_session, TENANT, template.id)
