"""
oidc_interactions.db

Persistence package (SQLAlchemy async).

Responsibilities:
- ORM models for clients, accounts, sessions, interactions, grants and the audit trail.
- Engine/session setup and thin repositories.
"""

# Package marker.
