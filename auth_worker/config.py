"""
Auth worker configuration. Everything comes from the environment with development defaults.
No secrets in this file; the signing key lives on disk and users live in the DB.
"""
import json
import os

# Issuer URL (public identifier, used as JWT iss and in metadata)
ISSUER = os.environ.get("OAUTH_ISSUER", "http://127.0.0.1:8787").rstrip("/")

# SQLite for development; any SQLAlchemy URL with upsert support (sqlite, postgresql) works
DATABASE_URL = os.environ.get("AUTH_DATABASE_URL", "sqlite:///./auth_worker.db")

# Registered clients: JSON object of client_id -> list of redirect URIs (exact match).
# List the trailing-slash variant separately if a client really uses both.
_DEFAULT_ALLOWED_CLIENTS = {
    "vegvisr-app-auth": ["https://auth.vegvisr.org/callback"],
}
ALLOWED_CLIENTS: dict[str, list[str]] = json.loads(
    os.environ.get("OAUTH_ALLOWED_CLIENTS") or json.dumps(_DEFAULT_ALLOWED_CLIENTS)
)

# Client used by the landing pages (/, /login, /register); its first redirect is used
DEFAULT_CLIENT_ID = os.environ.get("OAUTH_DEFAULT_CLIENT_ID", "vegvisr-app-auth")

# "redirect": 302 straight to /authorize. "page": interstitial with a link.
LANDING_MODE = os.environ.get("OAUTH_LANDING_MODE", "redirect")

# Key-value storage for pending flows and authorization codes: "database" or "memory"
STORAGE_BACKEND = os.environ.get("OAUTH_STORAGE", "database")

# "module:function" taking (email, code). Unset = log the code.
CODE_SENDER = os.environ.get("OAUTH_CODE_SENDER", "").strip() or None

# One-time login code sent by email
LOGIN_CODE_LENGTH = int(os.environ.get("OAUTH_LOGIN_CODE_LENGTH", "6"))
LOGIN_CODE_TTL_SECONDS = int(os.environ.get("OAUTH_LOGIN_CODE_TTL", "600"))
# Wrong codes allowed per login flow before it is discarded
LOGIN_MAX_ATTEMPTS = int(os.environ.get("OAUTH_LOGIN_MAX_ATTEMPTS", "5"))

# Authorization code lifetime (seconds), single use
CODE_TTL_SECONDS = int(os.environ.get("CODE_TTL_SECONDS", "60"))

# Access token lifetime (seconds)
ACCESS_TOKEN_EXPIRES = int(os.environ.get("OAUTH_ACCESS_TOKEN_EXPIRES", "900"))

# RSA private key PEM for signing access tokens. Generated and saved here if missing.
SIGNING_KEY_PATH = os.environ.get("OAUTH_SIGNING_KEY_PATH", ".auth_signing_key.pem")

# Presentation theme for the login pages
THEME_TITLE = os.environ.get("OAUTH_THEME_TITLE", "myAuth")
THEME_PRIMARY = os.environ.get("OAUTH_THEME_PRIMARY", "#0051c3")
THEME_FAVICON = os.environ.get("OAUTH_THEME_FAVICON", "https://workers.cloudflare.com//favicon.ico")
THEME_LOGO_DARK = os.environ.get("OAUTH_THEME_LOGO_DARK", "")
THEME_LOGO_LIGHT = os.environ.get("OAUTH_THEME_LOGO_LIGHT", "")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
