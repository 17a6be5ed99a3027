"""
oidc_interactions.observability

Observability package.

Responsibilities:
- Structured logging configuration.
- Request context propagation and response header policy for interaction routes.
"""

# Package marker.
