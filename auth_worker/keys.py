"""
RSA signing key for access tokens. Loaded from OAUTH_SIGNING_KEY_PATH or generated and
saved there on first use; no key material in code.
"""
import base64
import logging
import threading
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey, generate_private_key

logger = logging.getLogger(__name__)

_KEY_BITS = 2048
KID = "auth-worker-key"

_signing_key: RSAPrivateKey | None = None
_key_lock = threading.Lock()


def load_or_create_signing_key(path: str) -> RSAPrivateKey:
    p = Path(path)
    if p.exists():
        key = serialization.load_pem_private_key(p.read_bytes(), password=None)
        if not isinstance(key, RSAPrivateKey):
            raise ValueError(f"Signing key at {path} is not an RSA key")
        return key
    key = generate_private_key(public_exponent=65537, key_size=_KEY_BITS)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    try:
        p.write_bytes(pem)
        logger.info("Generated and saved signing key to %s", path)
    except OSError as e:
        # Tokens still work for this process; they just won't verify after a restart
        logger.warning("Could not save signing key to %s: %s", path, e)
    return key


def get_signing_key() -> tuple[RSAPrivateKey, str]:
    """Current private key and its kid."""
    global _signing_key
    with _key_lock:
        if _signing_key is None:
            from auth_worker.config import SIGNING_KEY_PATH

            _signing_key = load_or_create_signing_key(SIGNING_KEY_PATH)
    return _signing_key, KID


def _b64url_uint(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def public_key_to_jwk(public_key: RSAPublicKey, kid: str) -> dict:
    numbers = public_key.public_numbers()
    return {
        "kty": "RSA",
        "kid": kid,
        "alg": "RS256",
        "use": "sig",
        "n": _b64url_uint(numbers.n),
        "e": _b64url_uint(numbers.e),
    }


def get_jwks() -> dict:
    private_key, kid = get_signing_key()
    return {"keys": [public_key_to_jwk(private_key.public_key(), kid)]}
