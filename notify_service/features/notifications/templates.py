"""Placeholder substitution for notification templates.

Templates use ``{{key}}`` placeholders filled from the notification's
``context_data``. Rendering goes through a sandboxed Jinja2 environment;
placeholders with no value in the context are left in the output verbatim
so a missing key is visible to the reader rather than silently blank.
"""

from __future__ import annotations

import logging
from typing import Any

from jinja2 import TemplateError, Undefined
from jinja2.sandbox import SandboxedEnvironment

logger = logging.getLogger(__name__)


class TemplateRenderError(Exception):
    """Raised when a template cannot be parsed or rendered."""

    def __init__(self, message: str, template: str | None = None) -> None:
        super().__init__(message)
        self.template = template


class PlaceholderUndefined(Undefined):
    """Undefined that renders back as its own ``{{name}}`` placeholder."""

    __slots__ = ()

    def __str__(self) -> str:
        if self._undefined_name is None:
            return ""
        return "{{" + str(self._undefined_name) + "}}"


_env = SandboxedEnvironment(
    autoescape=False,
    undefined=PlaceholderUndefined,
    keep_trailing_newline=True,
)


def render_template(template: str, context: dict[str, Any] | None) -> str:
    """Fill ``{{key}}`` placeholders in ``template`` from ``context``.

    Raises:
        TemplateRenderError: On syntax errors or sandbox violations
    """
    if "{{" not in template and "{%" not in template:
        return template
    try:
        return _env.from_string(template).render(**(context or {}))
    except TemplateError as exc:
        msg = f"Failed to render template: {exc}"
        raise TemplateRenderError(msg, template=template) from exc


def render_or_fallback(template: str | None, context: dict[str, Any] | None, fallback: str) -> str:
    """Render ``template``, returning ``fallback`` when absent or broken."""
    if not template:
        return fallback
    try:
        return render_template(template, context)
    except TemplateRenderError as exc:
        logger.warning(
            "Template rendering failed, using raw text",
            extra={"error": str(exc)},
        )
        return fallback


__all__ = [
    "PlaceholderUndefined",
    "TemplateRenderError",
    "render_or_fallback",
    "render_template",
]
