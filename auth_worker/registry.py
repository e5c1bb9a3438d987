"""
Redirect registry: client_id -> allowed redirect URIs. Built once at startup, read-only after.
"""
from types import MappingProxyType
from typing import Mapping, Sequence

from auth_worker.config import ALLOWED_CLIENTS


class RedirectRegistry:
    """Immutable allow-list of redirect URIs per client. Exact string match only."""

    def __init__(self, clients: Mapping[str, Sequence[str]]):
        validated: dict[str, tuple[str, ...]] = {}
        for client_id, uris in clients.items():
            if not isinstance(client_id, str) or not client_id:
                raise ValueError("client_id must be a non-empty string")
            if isinstance(uris, str):
                raise ValueError(f"Redirects for {client_id} must be a list, not a string")
            uris = tuple(uris)
            if not uris:
                raise ValueError(f"Client {client_id} has no allowed redirects")
            for uri in uris:
                if not isinstance(uri, str) or not uri:
                    raise ValueError(f"Client {client_id} has an empty or non-string redirect")
            # Keep registration order (first = primary) but drop duplicates
            validated[client_id] = tuple(dict.fromkeys(uris))
        self._clients = MappingProxyType(validated)
        self._allowed = MappingProxyType({cid: frozenset(uris) for cid, uris in validated.items()})

    @classmethod
    def from_mapping(cls, clients: Mapping[str, Sequence[str]]) -> "RedirectRegistry":
        return cls(clients)

    def lookup(self, client_id: str) -> frozenset[str]:
        """Allowed redirects for client_id; empty set for unknown clients."""
        return self._allowed.get(client_id, frozenset())

    def is_allowed(self, client_id: str, redirect_uri: str) -> bool:
        return redirect_uri in self.lookup(client_id)

    def primary_redirect(self, client_id: str) -> str:
        """First registered redirect. KeyError if client_id is unknown."""
        return self._clients[client_id][0]

    def client_ids(self) -> list[str]:
        return list(self._clients)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._clients

    def __repr__(self) -> str:
        return f"RedirectRegistry({dict(self._clients)!r})"


def load_registry() -> RedirectRegistry:
    """Registry from OAUTH_ALLOWED_CLIENTS (or the built-in default)."""
    return RedirectRegistry.from_mapping(ALLOWED_CLIENTS)
