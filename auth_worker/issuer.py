"""
Issuer: the authorization-code engine behind the admission guard.

GET /authorize starts a login flow (email page), POST /authorize/email sends a one-time
code, POST /authorize/code verifies it, calls the success hook to resolve the subject and
redirects back to the client with an authorization code. POST /token exchanges the code
for a signed access token.

The guard has already admitted (client_id, redirect_uri) when GET /authorize runs; the
later steps only reference the stored flow, never client-supplied redirect parameters.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable
from urllib.parse import urlencode

import jwt
from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from auth_worker.config import ACCESS_TOKEN_EXPIRES, CODE_TTL_SECONDS, ISSUER
from auth_worker.errors import IdentityResolutionError
from auth_worker.guard import AuthorizationRequest
from auth_worker.keys import get_signing_key
from auth_worker.provider import CodeProvider, verify_code
from auth_worker.storage import KeyValueStorage
from auth_worker.subjects import Subject, SubjectSchemas
from auth_worker.theme import Theme, code_page, email_page

logger = logging.getLogger(__name__)
router = APIRouter()

SuccessHook = Callable[[str], Subject]


def _flow_key(flow_id: str) -> str:
    return f"oauth:flow:{flow_id}"


def _code_key(code: str) -> str:
    return f"oauth:code:{code}"


class Issuer:
    """Engine configuration: storage, subject schemas, provider, theme and the success hook."""

    def __init__(
        self,
        *,
        storage: KeyValueStorage,
        subjects: SubjectSchemas,
        provider: CodeProvider,
        success: SuccessHook,
        theme: Theme | None = None,
        issuer_url: str = ISSUER,
        code_ttl: int = CODE_TTL_SECONDS,
        access_token_expires: int = ACCESS_TOKEN_EXPIRES,
    ):
        self.storage = storage
        self.subjects = subjects
        self.provider = provider
        self.success = success
        self.theme = theme or Theme()
        self.issuer_url = issuer_url
        self.code_ttl = code_ttl
        self.access_token_expires = access_token_expires

    def start_flow(self, auth_request: AuthorizationRequest) -> str:
        flow_id = secrets.token_urlsafe(32)
        self.storage.set(
            _flow_key(flow_id),
            {
                "client_id": auth_request.client_id,
                "redirect_uri": auth_request.redirect_uri,
                "state": auth_request.state,
            },
            ttl=self.provider.ttl,
        )
        return flow_id

    def complete(self, email: str, flow: dict) -> str:
        """
        Run the success hook for a verified email and store an authorization code for the subject.
        IdentityResolutionError and collaborator errors propagate; nothing is stored then.
        """
        subject = self.subjects.validate(self.success(email))
        code = secrets.token_urlsafe(32)
        self.storage.set(
            _code_key(code),
            {
                "client_id": flow["client_id"],
                "redirect_uri": flow["redirect_uri"],
                "subject": {"type": subject.type, "properties": subject.properties},
            },
            ttl=self.code_ttl,
        )
        return code

    def issue_access_token(self, subject: Subject, client_id: str) -> str:
        private_key, kid = get_signing_key()
        now = datetime.now(timezone.utc)
        payload = {
            "iss": self.issuer_url,
            "sub": subject.sub,
            "aud": client_id,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.access_token_expires)).timestamp()),
            "type": subject.type,
            "properties": subject.properties,
        }
        return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid, "typ": "JWT"})


def get_issuer(request: Request) -> Issuer:
    return request.app.state.issuer


def _with_params(uri: str, params: dict) -> str:
    return f"{uri}{'&' if '?' in uri else '?'}{urlencode(params)}"


def _redirect_error(redirect_uri: str, error: str, error_description: str, state: str | None) -> RedirectResponse:
    params = {"error": error, "error_description": error_description}
    if state:
        params["state"] = state
    return RedirectResponse(url=_with_params(redirect_uri, params), status_code=302)


def _expired_flow() -> HTMLResponse:
    return HTMLResponse(
        "<h1>Invalid request</h1><p>Sign-in session expired. Start again from the application.</p>",
        status_code=400,
    )


@router.get("/authorize", response_class=HTMLResponse)
def authorize(
    response_type: str | None = None,
    client_id: str = "",
    redirect_uri: str = "",
    state: str | None = None,
    issuer: Issuer = Depends(get_issuer),
):
    """Start the email + code login for an admitted request."""
    if response_type != "code":
        return HTMLResponse("<h1>Invalid request</h1><p>unsupported response_type</p>", status_code=400)
    flow_id = issuer.start_flow(
        AuthorizationRequest(
            client_id=client_id,
            redirect_uri=redirect_uri,
            response_type=response_type,
            state=state,
        )
    )
    return HTMLResponse(email_page(issuer.theme, flow_id))


@router.post("/authorize/email", response_class=HTMLResponse)
def authorize_email(
    flow: str = Form(...),
    email: str = Form(...),
    issuer: Issuer = Depends(get_issuer),
):
    """Send a one-time code to email and show the code form."""
    state = issuer.storage.get(_flow_key(flow))
    if state is None:
        return _expired_flow()
    email = email.strip()
    if "@" not in email:
        return HTMLResponse(email_page(issuer.theme, flow, error="Enter a valid email address."), status_code=400)
    state["email"] = email
    state["code_hash"] = issuer.provider.start(email)
    issuer.storage.set(_flow_key(flow), state, ttl=issuer.provider.ttl)
    return HTMLResponse(code_page(issuer.theme, flow, email))


@router.post("/authorize/code")
def authorize_code(
    flow: str = Form(...),
    code: str = Form(...),
    issuer: Issuer = Depends(get_issuer),
):
    """Verify the one-time code; on success resolve the subject and redirect with an authorization code."""
    state = issuer.storage.get(_flow_key(flow))
    if state is None or not state.get("email") or not state.get("code_hash"):
        return _expired_flow()
    email = state["email"]
    if not verify_code(code.strip(), state["code_hash"]):
        attempts = state.get("failed_attempts", 0) + 1
        if attempts >= issuer.provider.max_attempts:
            # The flow is spent; a new code needs a new authorization request
            issuer.storage.pop(_flow_key(flow))
            logger.warning("Login flow for client %s discarded after %d wrong codes", state["client_id"], attempts)
            return _expired_flow()
        state["failed_attempts"] = attempts
        issuer.storage.set(_flow_key(flow), state, ttl=issuer.provider.ttl)
        logger.info("Invalid login code for flow of client %s", state["client_id"])
        return HTMLResponse(
            code_page(issuer.theme, flow, email, error="Invalid code. Check the code and try again."),
            status_code=401,
        )
    # Consume the flow so one proof completes at most one authorization
    if issuer.storage.pop(_flow_key(flow)) is None:
        return _expired_flow()
    try:
        auth_code = issuer.complete(email, state)
    except IdentityResolutionError as e:
        logger.error("Identity resolution failed for client %s: %s", state["client_id"], e)
        return _redirect_error(state["redirect_uri"], "server_error", "identity resolution failed", state.get("state"))
    params = {"code": auth_code}
    if state.get("state"):
        params["state"] = state["state"]
    return RedirectResponse(url=_with_params(state["redirect_uri"], params), status_code=302)


@router.post("/token")
def token(
    grant_type: str = Form(...),
    code: str | None = Form(None),
    redirect_uri: str | None = Form(None),
    client_id: str = Form(...),
    issuer: Issuer = Depends(get_issuer),
):
    """authorization_code grant: exchange a single-use code for an access token."""
    if grant_type != "authorization_code":
        raise HTTPException(
            status_code=400,
            detail={"error": "unsupported_grant_type", "error_description": "Only authorization_code is supported"},
        )
    if not code or not redirect_uri:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_request", "error_description": "code and redirect_uri are required"},
        )
    record = issuer.storage.pop(_code_key(code))
    if record is None:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_grant", "error_description": "Invalid or expired code"},
        )
    if record["client_id"] != client_id or record["redirect_uri"] != redirect_uri:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_grant", "error_description": "client_id or redirect_uri mismatch"},
        )
    subject = Subject(type=record["subject"]["type"], properties=record["subject"]["properties"])
    access_token = issuer.issue_access_token(subject, client_id)
    return {
        "access_token": access_token,
        "token_type": "Bearer",
        "expires_in": issuer.access_token_expires,
    }
