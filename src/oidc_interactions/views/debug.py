"""
oidc_interactions.views.debug

Debug pane formatting.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from pprint import pformat
from typing import Any

from markupsafe import Markup


def _items(obj: Any) -> list[tuple[str, Any]]:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return [(f.name, getattr(obj, f.name)) for f in dataclasses.fields(obj)]
    if isinstance(obj, Mapping):
        return [(str(k), v) for k, v in obj.items()]
    return [("value", obj)]


def format_debug(obj: Any) -> Markup:
    """
    One `<strong>key</strong>: value` line per truthy member, joined by `<br/>`.
    Values are pretty-printed and HTML-escaped.
    """

    lines = [
        Markup("<strong>{}</strong>: {}").format(key, pformat(value, width=100, sort_dicts=True))
        for key, value in _items(obj)
        if value
    ]
    return Markup("<br/>").join(lines)
