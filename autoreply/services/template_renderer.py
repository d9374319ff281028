"""Named response templates."""

from string import Template
from typing import Any, Protocol, runtime_checkable

from autoreply.errors import TemplateRenderError


@runtime_checkable
class TemplateRenderer(Protocol):
    """Turns a template name plus parameters into a sendable payload."""

    def render(self, template_name: str, params: dict[str, Any]) -> str | dict[str, Any]: ...


class DictTemplateRenderer:
    """Renders templates held in a dict.

    A template is either a string or a card dict; ``$name`` placeholders in
    any string inside it are substituted from params. Unknown placeholders
    are left as-is.
    """

    def __init__(self, templates: dict[str, Any] | None = None):
        self.templates = templates or {}

    def render(self, template_name: str, params: dict[str, Any]) -> str | dict[str, Any]:
        try:
            template = self.templates[template_name]
        except KeyError:
            raise TemplateRenderError(f"Unknown template: {template_name}") from None
        return self._substitute(template, params)

    def _substitute(self, value: Any, params: dict[str, Any]) -> Any:
        if isinstance(value, str):
            return Template(value).safe_substitute(params)
        if isinstance(value, dict):
            return {key: self._substitute(item, params) for key, item in value.items()}
        if isinstance(value, list):
            return [self._substitute(item, params) for item in value]
        return value
