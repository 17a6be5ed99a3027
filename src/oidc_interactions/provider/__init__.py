"""
oidc_interactions.provider

Simulated Authorization Engine.

Responsibilities:
- Database-backed implementation of the engine contract used by the coordinator.
- Minimal authorize/resume endpoints so the interaction flow runs end to end.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Swap this package for an adapter to a real provider without touching `interaction`.
