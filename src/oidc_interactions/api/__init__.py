"""
oidc_interactions.api

API package for the interaction service.

Responsibilities:
- FastAPI app factory and router modules.
- Dependency wiring and error-to-response mapping.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer stays thin: parse the request, call the service, map the outcome.
