"""
oidc_interactions.interaction

Interaction & grant coordination subsystem.

Responsibilities:
- Prompt policy, account resolution, grant accumulation, finalization.
- The coordinator state machine that ties them together.
"""

# Package marker; import from submodules.


# --- Module Notes -----------------------------------------------------------
# Nothing in this package imports FastAPI or SQLAlchemy; collaborators arrive through
# the protocols in `interaction.contracts`.
