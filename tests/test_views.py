"""
tests.test_views

Debug formatting and layout rendering.
"""

from __future__ import annotations

from oidc_interactions.interaction.contracts import Session
from oidc_interactions.views.debug import format_debug
from oidc_interactions.views.render import render_with_layout


def test_format_debug_skips_empty_values_and_escapes() -> None:
    out = format_debug({"scope": "openid", "prompt": "", "state": "<x>"})

    assert str(out) == "<strong>scope</strong>: &#39;openid&#39;<br/><strong>state</strong>: &#39;&lt;x&gt;&#39;"


def test_format_debug_reads_dataclasses() -> None:
    out = format_debug(Session(id="s-1", account_id="acc-1"))

    assert "<strong>id</strong>: &#39;s-1&#39;" in out
    assert "<strong>account_id</strong>: &#39;acc-1&#39;" in out
    assert "grants" not in out


def test_error_view_inside_layout() -> None:
    html = render_with_layout(
        "error",
        {"title": "oops! something went wrong", "error": "invalid_request", "error_description": "<b>bad</b>"},
    )

    assert "<title>oops! something went wrong</title>" in html
    assert "<strong>invalid_request</strong>" in html
    assert "&lt;b&gt;bad&lt;/b&gt;" in html
