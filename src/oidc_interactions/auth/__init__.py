"""
oidc_interactions.auth

Service-to-service authentication.

Responsibilities:
- JWT helpers for short-lived service tokens.
- FastAPI dependencies guarding internal endpoints (Principal + roles).
"""

# Package marker.
