"""
oidc_interactions.views

HTML rendering for interaction prompts.

Responsibilities:
- Explicit layout composition (`render.render_with_layout`).
- Pure debug formatting of params/prompt/session for the debug panes.
"""

# Package marker.
