"""
oidc_interactions.views.render

Template rendering with an explicit layout.

Responsibilities:
- Render a named view, then wrap it in `_layout.html`.
"""

from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape
from markupsafe import Markup


@lru_cache(maxsize=1)
def get_environment() -> Environment:
    return Environment(
        loader=PackageLoader("oidc_interactions", "templates"),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
    )


def render_view(view: str, context: Mapping[str, Any]) -> str:
    return get_environment().get_template(f"{view}.html").render(**context)


def render_with_layout(view: str, context: Mapping[str, Any]) -> str:
    body = render_view(view, context)
    return render_view("_layout", {**context, "body": Markup(body)})


# --- Module Notes -----------------------------------------------------------
# Handlers call `render_with_layout` themselves; nothing patches the response object.
