"""
fetcher.py -- Snapshot sources. Everything the audit reads from the host
access-control system comes through here.

Two sources are bundled:
  SnapshotSource -- a JSON snapshot document on disk.
  HostApiSource  -- the same shapes served over HTTP by the host.

Both enumerate user ids in ascending order, so audit output is reproducible.
"""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Protocol

import requests

from .models import HostUnavailableError, User, UserResolutionError

logger = logging.getLogger("capdrift.fetcher")


class AccessControlSource(Protocol):
    """What the audit engine needs from the host. Read-only."""

    def list_roles(self) -> Optional[dict[str, Any]]: ...

    def list_user_ids(self) -> list[int]: ...

    def resolve_user(self, user_id: int) -> Optional[User]: ...


# ---------------------------------------------------------------------------
# Parsing helpers -- defensive, wrong shapes degrade to empty
# ---------------------------------------------------------------------------


def _flag_map(value: Any) -> dict[str, bool]:
    """Coerce a capability mapping. Hosts that serialize empty maps as [] get {}."""
    if isinstance(value, Mapping):
        return {str(k): bool(v) for k, v in value.items()}
    return {}


def _cap_set(value: Any) -> set[str]:
    """Effective caps may arrive as {cap: bool} or as a plain list of held names."""
    if isinstance(value, Mapping):
        return {str(k) for k, v in value.items() if v}
    if isinstance(value, list):
        return {str(v) for v in value if isinstance(v, str)}
    return set()


def _user_id(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def parse_user(raw: Any) -> Optional[User]:
    """Build a User from a raw host record. Returns None if there is no usable id."""
    if not isinstance(raw, Mapping):
        return None
    user_id = _user_id(raw.get("id", raw.get("ID")))
    if user_id is None:
        return None
    roles = raw.get("roles")
    return User(
        id=user_id,
        login=str(raw.get("login") or raw.get("user_login") or ""),
        email=str(raw.get("email") or raw.get("user_email") or ""),
        roles=[str(r) for r in roles] if isinstance(roles, list) else [],
        caps=_flag_map(raw.get("caps")),
        allcaps=_cap_set(raw.get("allcaps")),
    )


def parse_roles(raw: Any) -> Optional[dict[str, Any]]:
    """Normalize a roles document to role id -> {"name", "capabilities"}.

    Returns None when the document is not a mapping at all (no usable data).
    An empty list is the host's encoding of an empty mapping and yields {}.
    A role whose own data is malformed keeps its id with no capabilities.
    """
    if isinstance(raw, list) and not raw:
        return {}
    if not isinstance(raw, Mapping):
        return None
    roles: dict[str, Any] = {}
    for role_id, role_data in raw.items():
        data = role_data if isinstance(role_data, Mapping) else {}
        name = data.get("name")
        roles[str(role_id)] = {
            "name": name if isinstance(name, str) and name else str(role_id),
            "capabilities": _flag_map(data.get("capabilities")),
        }
    return roles


# ---------------------------------------------------------------------------
# JSON snapshot file
# ---------------------------------------------------------------------------


class SnapshotSource:
    """Reads roles and users from an in-memory snapshot document.

    Document shape:
        {"roles": {role_id: {"name": ..., "capabilities": {cap: bool}}},
         "users": [{"id", "login", "email", "roles", "caps", "allcaps"}]}
    """

    def __init__(self, document: Any) -> None:
        self._document = document if isinstance(document, Mapping) else {}
        self._users: dict[int, Any] = {}
        users = self._document.get("users")
        if isinstance(users, list):
            for raw in users:
                user_id = _user_id(raw.get("id", raw.get("ID"))) if isinstance(raw, Mapping) else None
                if user_id is None:
                    logger.warning("Snapshot user record without a usable id skipped")
                    continue
                self._users[user_id] = raw

    @classmethod
    def from_file(cls, path: str) -> "SnapshotSource":
        """Load a snapshot from disk. Raises HostUnavailableError if it cannot be read."""
        file_path = Path(path).resolve()
        if not file_path.is_file():
            raise HostUnavailableError(f"Snapshot '{path}' is not a readable file.")
        try:
            document = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise HostUnavailableError(f"Could not read snapshot '{path}': {e}") from e
        return cls(document)

    def list_roles(self) -> Optional[dict[str, Any]]:
        return parse_roles(self._document.get("roles"))

    def list_user_ids(self) -> list[int]:
        return sorted(self._users)

    def resolve_user(self, user_id: int) -> Optional[User]:
        raw = self._users.get(user_id)
        if raw is None:
            raise UserResolutionError(f"User {user_id} is not in the snapshot")
        return parse_user(raw)


# ---------------------------------------------------------------------------
# Host HTTP API
# ---------------------------------------------------------------------------


class HostApiSource:
    """Reads roles and users from the host over HTTP.

    Endpoints, relative to base_url:
        GET /roles       -> roles document
        GET /users       -> [{"id": ...}, ...] (bulk listing, no capability detail)
        GET /users/{id}  -> one full user record

    Each user is resolved individually; the bulk listing is never trusted to
    carry direct capability detail.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        # These are known host endpoints; a long redirect chain is never legitimate.
        self._session.max_redirects = 3
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def _get(self, path: str) -> Any:
        resp = self._session.get(f"{self.base_url}{path}", timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def list_roles(self) -> Optional[dict[str, Any]]:
        try:
            return parse_roles(self._get("/roles"))
        except (requests.RequestException, ValueError) as e:
            raise HostUnavailableError(f"Role data unavailable from {self.base_url}: {e}") from e

    def list_user_ids(self) -> list[int]:
        try:
            listing = self._get("/users")
        except (requests.RequestException, ValueError) as e:
            raise HostUnavailableError(f"User listing unavailable from {self.base_url}: {e}") from e
        if not isinstance(listing, list):
            return []
        ids = {_user_id(entry.get("id", entry.get("ID"))) for entry in listing if isinstance(entry, Mapping)}
        return sorted(i for i in ids if i is not None)

    def resolve_user(self, user_id: int) -> Optional[User]:
        try:
            return parse_user(self._get(f"/users/{user_id}"))
        except (requests.RequestException, ValueError) as e:
            logger.warning("User lookup failed for %s: %s", user_id, e)
            return None
