"""
oidc_interactions.db.repositories

Repository package.

Responsibilities:
- Group data-access repositories; each maps ORM rows to `interaction.contracts` types.
"""

# Package marker; repositories are imported directly from submodules.
