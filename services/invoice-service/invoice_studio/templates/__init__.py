from .registry import get_renderer, get_template_info, list_templates, project, resolve_template_id
from .render_tree import RenderTree

__all__ = [
    "RenderTree",
    "get_renderer",
    "get_template_info",
    "list_templates",
    "project",
    "resolve_template_id",
]
