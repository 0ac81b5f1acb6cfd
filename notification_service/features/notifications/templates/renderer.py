"""Variable substitution for notification templates.

Templates use double-brace placeholders (``{{ name }}``, ``{{ order.id }}``,
``{{ items[0].title }}``). Only variable substitution is supported: there
are no blocks, filters or helpers. Each placeholder path is compiled into a
Jinja2 expression in a sandboxed environment and evaluated against the
render data; paths that do not resolve render as an empty string.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from jinja2 import ChainableUndefined, Undefined
from jinja2.sandbox import SandboxedEnvironment

from notification_service.features.notifications.exceptions import TemplateRenderError
from notification_service.infra.logging import get_lazy_logger, get_logger

VARIABLE_PATTERN = re.compile(r"{{\s*([\w.\[\]]+)\s*}}")
_ROOT_PATTERN = re.compile(r"\w+")
_SEGMENT_PATTERN = re.compile(r"\.(\w+)|\[(\w+)\]")
_SCOPE_NAME = "scope"

RECIPIENT_PREFIX = "recipient"


@dataclass(slots=True, frozen=True)
class RenderedContent:
    """Rendered subject and body for one notification or recipient."""

    body: str
    subject: str | None = None


def extract_variables(content: str) -> list[str]:
    """Return the unique placeholder paths in ``content``, first-seen order.

    Matching is case-sensitive: ``{{Name}}`` and ``{{name}}`` are distinct.
    """
    return list(dict.fromkeys(VARIABLE_PATTERN.findall(content or "")))


def references_recipient(variables: list[str]) -> bool:
    """Whether any variable path reads from the per-recipient render context."""
    return any(
        var == RECIPIENT_PREFIX or var.startswith((f"{RECIPIENT_PREFIX}.", f"{RECIPIENT_PREFIX}["))
        for var in variables
    )


def _to_expression(path: str) -> str:
    """Translate ``a.b[0]`` into ``scope['a']['b'][0]``.

    Every segment becomes a subscript so dict keys win over dict methods
    (``order.items`` reads the "items" key) and names such as ``true`` read
    from the data instead of becoming Jinja literals.
    """
    root_match = _ROOT_PATTERN.match(path)
    if root_match is None:
        raise TemplateRenderError(reason=f"invalid variable path: {path}")

    parts = [f"{_SCOPE_NAME}[{root_match.group(0)!r}]"]
    position = root_match.end()
    for segment in _SEGMENT_PATTERN.finditer(path, position):
        if segment.start() != position:
            break
        name, index = segment.groups()
        if name is not None:
            parts.append(f"[{name!r}]")
        else:
            parts.append(f"[{int(index)}]" if index.isdigit() else f"[{index!r}]")
        position = segment.end()

    if position != len(path):
        raise TemplateRenderError(reason=f"invalid variable path: {path}")
    return "".join(parts)


class TemplateRenderer:
    """Placeholder renderer backed by a sandboxed Jinja2 environment.

    The sandbox only ever sees a single variable lookup chain per
    placeholder, and rejects access to private attributes of the data.
    """

    def __init__(self) -> None:
        self._logger = get_logger(__name__)
        self._lazy = get_lazy_logger(__name__)
        self._env = SandboxedEnvironment(autoescape=False, undefined=ChainableUndefined)
        self._compile: Callable[[str], Callable[..., Any]] = lru_cache(maxsize=1024)(
            self._compile_path
        )

    def render(self, content: str, data: dict[str, Any]) -> str:
        """Substitute every placeholder in ``content`` with its value from ``data``.

        Args:
            content: Template text.
            data: Render context; nested dicts, lists and objects are supported.

        Returns:
            Rendered text with no placeholder tokens left.

        Raises:
            TemplateRenderError: If the content has unbalanced or malformed
                placeholders, or evaluating a path fails.
        """
        leftover = VARIABLE_PATTERN.sub("", content)
        if "{{" in leftover:
            self._logger.warning("Malformed placeholder in template content")
            raise TemplateRenderError(reason="unbalanced or unsupported placeholder")

        try:
            rendered = VARIABLE_PATTERN.sub(
                lambda match: self._stringify(self._resolve(match.group(1), data)),
                content,
            )
        except TemplateRenderError:
            raise
        except Exception as exc:
            self._logger.exception("Failed to render notification template")
            raise TemplateRenderError(reason=str(exc)) from exc

        self._lazy.debug(lambda: f"Rendered {len(content)} chars into {len(rendered)} chars")
        return rendered

    def render_content(
        self,
        content: str,
        subject: str | None,
        data: dict[str, Any],
    ) -> RenderedContent:
        """Render body and optional subject against the same data."""
        return RenderedContent(
            body=self.render(content, data),
            subject=self.render(subject, data) if subject else None,
        )

    def _resolve(self, path: str, data: dict[str, Any]) -> Any:
        return self._compile(path)(**{_SCOPE_NAME: data})

    def _compile_path(self, path: str) -> Callable[..., Any]:
        try:
            return self._env.compile_expression(_to_expression(path), undefined_to_none=True)
        except TemplateRenderError:
            raise
        except Exception as exc:
            raise TemplateRenderError(reason=f"invalid variable path: {path}") from exc

    @staticmethod
    def _stringify(value: Any) -> str:
        if value is None or isinstance(value, Undefined) or callable(value):
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, dict | list | tuple):
            return json.dumps(value, default=str)
        return str(value)


# Singleton instance
_renderer: TemplateRenderer | None = None


def get_template_renderer() -> TemplateRenderer:
    """Get or create the singleton TemplateRenderer instance.

    Returns:
        TemplateRenderer instance
    """
    global _renderer
    if _renderer is None:
        _renderer = TemplateRenderer()
    return _renderer


__all__ = [
    "VARIABLE_PATTERN",
    "RenderedContent",
    "TemplateRenderer",
    "extract_variables",
    "get_template_renderer",
    "references_recipient",
]
