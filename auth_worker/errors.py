"""
Errors raised by the auth worker. Admission and callback errors become 400 responses;
identity errors fail the authorization attempt.
"""

ADMISSION_REJECTED_MESSAGE = "unauthorized client/redirect"
MISROUTED_CALLBACK_MESSAGE = "Callback is handled by your app worker"


class AuthWorkerError(Exception):
    """Base class for auth worker errors."""


class AdmissionError(AuthWorkerError):
    """Unknown client, or redirect_uri not in the client's allow-list."""

    def __init__(self, client_id: str):
        # client_id is for server logs only; the response never says which check failed
        super().__init__(ADMISSION_REJECTED_MESSAGE)
        self.client_id = client_id


class MisroutedCallbackError(AuthWorkerError):
    def __init__(self):
        super().__init__(MISROUTED_CALLBACK_MESSAGE)


class IdentityResolutionError(AuthWorkerError):
    """The user upsert returned no row. No subject may be issued."""

    def __init__(self, email: str):
        super().__init__(f"Unable to process user: {email}")
        self.email = email
