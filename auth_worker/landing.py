"""
Landing pages (/, /login, /register): send people into a well-formed authorization request
for the default client, either by redirect or through an interstitial page.
"""
from urllib.parse import urlencode

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from auth_worker.guard import AUTHORIZE_PATH
from auth_worker.registry import RedirectRegistry
from auth_worker.theme import landing_page

router = APIRouter()

LANDING_MODES = ("redirect", "page")


def build_authorize_url(base_url: str, registry: RedirectRegistry, client_id: str) -> str:
    """/authorize URL on base_url for client_id and its primary redirect. KeyError if unregistered."""
    params = {
        "client_id": client_id,
        "redirect_uri": registry.primary_redirect(client_id),
        "response_type": "code",
    }
    return f"{base_url.rstrip('/')}{AUTHORIZE_PATH}?{urlencode(params)}"


@router.get("/")
@router.get("/login")
@router.get("/register")
def landing(request: Request):
    state = request.app.state
    url = build_authorize_url(str(request.base_url), state.registry, state.default_client_id)
    if state.landing_mode == "page":
        return HTMLResponse(landing_page(state.issuer.theme, url))
    return RedirectResponse(url=url, status_code=302)
