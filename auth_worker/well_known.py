"""
Well-known endpoints: JWKS and authorization server metadata.
"""
from fastapi import APIRouter

from auth_worker.config import ISSUER
from auth_worker.keys import get_jwks

router = APIRouter()


@router.get("/.well-known/jwks.json")
def jwks_json():
    """JSON Web Key Set for access token signature verification."""
    return get_jwks()


@router.get("/.well-known/oauth-authorization-server")
def authorization_server_metadata():
    return {
        "issuer": ISSUER,
        "authorization_endpoint": f"{ISSUER}/authorize",
        "token_endpoint": f"{ISSUER}/token",
        "jwks_uri": f"{ISSUER}/.well-known/jwks.json",
        "response_types_supported": ["code"],
        "grant_types_supported": ["authorization_code"],
    }
