"""Tests for the landing pages and the misrouted callback."""
import html
import re
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient

from auth_worker.guard import admit
from auth_worker.landing import build_authorize_url

APP_X_CB = "https://app-x.example/cb"


def _path_and_query(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}"


@pytest.mark.parametrize("path", ["/", "/login", "/register"])
def test_landing_redirects_to_authorize(client, path):
    response = client.get(path, follow_redirects=False)
    assert response.status_code == 302
    location = response.headers["location"]
    assert location.startswith("http://testserver/authorize?")
    query = parse_qs(urlsplit(location).query)
    assert query == {"client_id": ["app-x"], "redirect_uri": [APP_X_CB], "response_type": ["code"]}


def test_landing_redirect_is_admitted(client):
    """The landing URL must never be rejected by the guard."""
    location = client.get("/", follow_redirects=False).headers["location"]
    response = client.get(_path_and_query(location))
    assert response.status_code == 200
    assert "Sign in" in response.text


def test_landing_page_mode(make_app):
    client = TestClient(make_app(landing_mode="page"))
    response = client.get("/login")
    assert response.status_code == 200
    assert "one-time code" in response.text
    href = html.unescape(re.search(r'href="([^"]*/authorize\?[^"]*)"', response.text).group(1))
    followed = client.get(_path_and_query(href))
    assert followed.status_code == 200


def test_build_authorize_url_admitted_for_every_client(registry):
    for client_id in registry.client_ids():
        url = build_authorize_url("https://auth.example/", registry, client_id)
        assert url.startswith("https://auth.example/authorize?")
        params = {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}
        req = admit(registry, params)
        assert req.redirect_uri == registry.primary_redirect(client_id)
        assert req.response_type == "code"


def test_unregistered_default_client_rejected_at_startup(make_app):
    with pytest.raises(ValueError):
        make_app(default_client_id="not-registered")


def test_unknown_landing_mode_rejected(make_app):
    with pytest.raises(ValueError):
        make_app(landing_mode="popup")


def test_callback_is_misrouted(client):
    response = client.get("/callback", params={"code": "abc", "state": "s"})
    assert response.status_code == 400
    assert response.text == "Callback is handled by your app worker"
