"""Unit tests for core/fetcher.py -- snapshot parsing and the HTTP host source.

The HTTP source is exercised with a MagicMock session; no network calls.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from core.fetcher import HostApiSource, SnapshotSource, parse_roles, parse_user
from core.models import HostUnavailableError, UserResolutionError


def _response(payload=None, status=200, raise_exc=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    if raise_exc is not None:
        resp.raise_for_status.side_effect = raise_exc
    return resp


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParseUser:
    def test_full_record(self):
        user = parse_user(
            {
                "id": "7",
                "login": "bob",
                "email": "bob@example.com",
                "roles": ["editor"],
                "caps": {"editor": True, "export": 1},
                "allcaps": {"export": True, "read": True, "import": False},
            }
        )
        assert user.id == 7
        assert user.caps == {"editor": True, "export": True}
        assert user.allcaps == {"export", "read"}

    def test_host_field_names(self):
        user = parse_user({"ID": 3, "user_login": "carol", "user_email": "c@example.com"})
        assert (user.id, user.login, user.email) == (3, "carol", "c@example.com")

    def test_empty_list_encodings(self):
        user = parse_user({"id": 1, "roles": {}, "caps": [], "allcaps": []})
        assert user.roles == []
        assert user.caps == {}
        assert user.allcaps == set()

    def test_allcaps_as_name_list(self):
        assert parse_user({"id": 1, "allcaps": ["read", "export", 5]}).allcaps == {"read", "export"}

    def test_no_usable_id(self):
        assert parse_user({"login": "nobody"}) is None
        assert parse_user({"id": "abc"}) is None
        assert parse_user({"id": float("inf")}) is None
        assert parse_user("garbage") is None


class TestParseRoles:
    def test_not_a_mapping_is_no_data(self):
        assert parse_roles(None) is None
        assert parse_roles(["subscriber"]) is None

    def test_empty_list_is_empty_mapping(self):
        assert parse_roles([]) == {}

    def test_malformed_role_keeps_id(self):
        roles = parse_roles({"ghost": "oops", "editor": {"name": "Editor", "capabilities": []}})
        assert roles["ghost"] == {"name": "ghost", "capabilities": {}}
        assert roles["editor"] == {"name": "Editor", "capabilities": {}}


# ---------------------------------------------------------------------------
# SnapshotSource
# ---------------------------------------------------------------------------


class TestSnapshotSource:
    def test_user_ids_ascending(self, snapshot_doc):
        assert SnapshotSource(snapshot_doc).list_user_ids() == [1, 2, 3, 4, 5]

    def test_resolve_unknown_user_raises(self, snapshot_doc):
        with pytest.raises(UserResolutionError):
            SnapshotSource(snapshot_doc).resolve_user(999)

    def test_missing_roles_key_is_no_data(self):
        assert SnapshotSource({"users": []}).list_roles() is None

    def test_empty_roles_list_is_empty_mapping(self):
        source = SnapshotSource({"roles": [], "users": []})
        assert source.list_roles() == {}
        assert source.list_user_ids() == []

    def test_overflowing_user_id_skipped(self):
        source = SnapshotSource({"users": [{"id": float("inf"), "login": "x"}, {"id": 2, "login": "bob"}]})
        assert source.list_user_ids() == [2]

    def test_from_file(self, tmp_path, snapshot_doc):
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps(snapshot_doc))
        source = SnapshotSource.from_file(str(path))
        assert set(source.list_roles()) == {"subscriber", "editor", "administrator", "shop_manager"}

    def test_from_missing_file_raises(self, tmp_path):
        with pytest.raises(HostUnavailableError):
            SnapshotSource.from_file(str(tmp_path / "missing.json"))

    def test_from_invalid_json_raises(self, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text("{not json")
        with pytest.raises(HostUnavailableError, match="Could not read snapshot"):
            SnapshotSource.from_file(str(path))


# ---------------------------------------------------------------------------
# HostApiSource
# ---------------------------------------------------------------------------


class TestHostApiSource:
    def test_list_roles(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = _response({"editor": {"name": "Editor", "capabilities": {"read": True}}})
        source = HostApiSource("https://host.example/access/", token="t0k", session=session)

        roles = source.list_roles()

        assert roles == {"editor": {"name": "Editor", "capabilities": {"read": True}}}
        session.get.assert_called_once_with("https://host.example/access/roles", timeout=10)
        assert session.headers["Authorization"] == "Bearer t0k"

    def test_list_roles_network_failure_raises(self):
        session = MagicMock()
        session.headers = {}
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(HostUnavailableError):
            HostApiSource("https://host.example", session=session).list_roles()

    def test_list_user_ids_sorted_and_deduplicated(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = _response([{"id": 9}, {"id": 2}, {"id": "2"}, {"name": "no id"}])
        assert HostApiSource("https://host.example", session=session).list_user_ids() == [2, 9]

    def test_resolve_user_http_error_returns_none(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = _response(status=404, raise_exc=requests.HTTPError("404"))
        assert HostApiSource("https://host.example", session=session).resolve_user(4) is None

    def test_resolve_user(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = _response({"id": 4, "login": "dave", "roles": [], "caps": {}, "allcaps": {}})
        user = HostApiSource("https://host.example", session=session).resolve_user(4)
        assert user.login == "dave"
        session.get.assert_called_once_with("https://host.example/users/4", timeout=10)
