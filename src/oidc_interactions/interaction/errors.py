"""
oidc_interactions.interaction.errors

Error taxonomy of the interaction subsystem.

Responsibilities:
- Name every failure kind a coordinator/accumulator operation may report.
- Carry the OAuth-style `error` code and HTTP status the API layer maps it to.
"""

from __future__ import annotations


class InteractionError(Exception):
    error: str = "server_error"
    status_code: int = 500

    def __init__(self, description: str, *, uid: str | None = None) -> None:
        super().__init__(description)
        self.description = description
        self.uid = uid


class ProtocolMismatch(InteractionError):
    """
    Submitted action does not match the interaction's current prompt.
    Nothing was written; the caller may retry with the correct action.
    """

    error = "invalid_request"
    status_code = 400

    def __init__(self, *, uid: str, expected: str, actual: str | None) -> None:
        super().__init__(f"expected prompt {expected!r}, interaction is at {actual!r}", uid=uid)
        self.expected = expected
        self.actual = actual


class UnknownOrExpiredInteraction(InteractionError):
    """
    Uid is absent, expired or already finalized. Terminal for the uid.
    """

    error = "invalid_request"
    status_code = 404

    def __init__(self, *, uid: str, reason: str = "interaction session not found") -> None:
        super().__init__(reason, uid=uid)


class AccountLookupFailure(InteractionError):
    """
    Soft failure: the login identifier does not resolve to an account.
    """

    error = "login_required"
    status_code = 401

    def __init__(self, *, login: str, uid: str | None = None) -> None:
        super().__init__("no account matches the submitted login", uid=uid)
        self.login = login


class AbortedByUser(InteractionError):
    error = "access_denied"
    status_code = 400
    description_text = "End-User aborted interaction"

    def __init__(self, *, uid: str | None = None) -> None:
        super().__init__(self.description_text, uid=uid)


class GrantConflict(InteractionError):
    """
    Grant row changed since it was read (version mismatch).
    """

    error = "server_error"
    status_code = 500

    def __init__(self, *, grant_id: str) -> None:
        super().__init__(f"grant {grant_id} was modified concurrently")
        self.grant_id = grant_id


class UnhandledInternalError(InteractionError):
    error = "server_error"
    status_code = 500


# --- Module Notes -----------------------------------------------------------
# The API layer maps these in `api.errors`; nothing below the API layer turns them
# into HTTP responses.
