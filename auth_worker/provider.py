"""
One-time code provider: generates the login code, delivers it through a pluggable sender,
and keeps only a bcrypt hash of it in storage.
"""
import importlib
import logging
import secrets
from typing import Callable

import bcrypt

logger = logging.getLogger(__name__)

CodeSender = Callable[[str, str], None]


def log_code_sender(email: str, code: str) -> None:
    """Stand-in delivery: write the code to the log. Replace with a real mail transport."""
    logger.info("Sending code %s to %s", code, email)


def load_code_sender(path: str | None) -> CodeSender:
    """Resolve "package.module:function"; None means log_code_sender."""
    if not path:
        return log_code_sender
    module_name, sep, attr = path.partition(":")
    if not sep or not attr:
        raise ValueError(f"Code sender must look like 'module:function', got {path!r}")
    sender = getattr(importlib.import_module(module_name), attr)
    if not callable(sender):
        raise ValueError(f"Code sender {path!r} is not callable")
    return sender


def hash_code(code: str) -> str:
    return bcrypt.hashpw(code.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_code(plain: str, hashed: str) -> bool:
    if not plain:
        return False
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


class CodeProvider:
    """Email + one-time code credential provider."""

    def __init__(
        self,
        send_code: CodeSender = log_code_sender,
        length: int = 6,
        ttl: int = 600,
        max_attempts: int = 5,
    ):
        if length < 4:
            raise ValueError("Login codes must be at least 4 digits")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.send_code = send_code
        self.length = length
        self.ttl = ttl
        self.max_attempts = max_attempts

    def generate_code(self) -> str:
        return "".join(str(secrets.randbelow(10)) for _ in range(self.length))

    def start(self, email: str) -> str:
        """Generate and deliver a code; returns its hash for storage."""
        code = self.generate_code()
        self.send_code(email, code)
        return hash_code(code)
