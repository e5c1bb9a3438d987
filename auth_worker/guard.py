"""
Admission guard: every request to /authorize must name a registered client and one of
that client's redirect URIs (exact string match) before the issuer sees it.
"""
import logging
from dataclasses import dataclass
from typing import Mapping

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from auth_worker.errors import AdmissionError
from auth_worker.registry import RedirectRegistry

logger = logging.getLogger(__name__)

AUTHORIZE_PATH = "/authorize"


@dataclass(frozen=True)
class AuthorizationRequest:
    client_id: str
    redirect_uri: str
    response_type: str = ""
    state: str | None = None


def admit(registry: RedirectRegistry, params: Mapping[str, str]) -> AuthorizationRequest:
    """Return the request if (client_id, redirect_uri) is registered; raise AdmissionError otherwise."""
    client_id = params.get("client_id") or ""
    redirect_uri = params.get("redirect_uri") or ""
    if not registry.is_allowed(client_id, redirect_uri):
        raise AdmissionError(client_id)
    return AuthorizationRequest(
        client_id=client_id,
        redirect_uri=redirect_uri,
        response_type=params.get("response_type") or "",
        state=params.get("state"),
    )


class AdmissionGuardMiddleware(BaseHTTPMiddleware):
    """Rejects unadmitted /authorize requests with 400 before anything downstream runs."""

    def __init__(self, app, registry: RedirectRegistry, path: str = AUTHORIZE_PATH):
        super().__init__(app)
        self.registry = registry
        self.path = path

    async def dispatch(self, request: Request, call_next):
        if request.url.path == self.path:
            try:
                admit(self.registry, request.query_params)
            except AdmissionError as e:
                logger.warning("Rejected authorization request for client_id=%r", e.client_id)
                return PlainTextResponse(str(e), status_code=400)
        return await call_next(request)
