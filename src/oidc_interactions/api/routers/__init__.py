"""
oidc_interactions.api.routers

HTTP routers.

Responsibilities:
- Interaction pages (`/interaction/...`).
- Simulated provider entry/resume endpoints and the internal account directory.
- Health and readiness probes.
"""

# Package marker.
