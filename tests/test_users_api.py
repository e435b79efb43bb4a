"""User administration API tests.

Learn: Covers the two gates in order (401 before 403), the admin CRUD
operations, listing with pagination/sort/filter, and profile images.
"""

import io
import os
from pathlib import Path

import pytest
from starlette.datastructures import Headers, UploadFile

from conftest import bearer, profile
from userhub.config import settings
from userhub.errors import ValidationFailed
from userhub.services import uploads

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def _register(client, **overrides) -> dict:
    r = await client.post("/api/auth/register", json=profile(**overrides))
    assert r.status_code == 201
    return r.json()["data"]


# ═══════════════════════════════════════════════════════════
# Authentication before authorization
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_users_without_token_is_401(client):
    r = await client.get("/api/users")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_list_users_with_garbled_token_is_401_not_403(client):
    r = await client.get("/api/users", headers=bearer("garbled.token.value"))
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_bad_query_without_token_is_still_401(client):
    r = await client.get("/api/users?limit=1000")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_regular_user_is_403(client, registered):
    headers = bearer(registered["access_token"])
    user_id = registered["user"]["id"]

    for method, path in [
        ("GET", "/api/users"),
        ("GET", f"/api/users/{user_id}"),
        ("PUT", f"/api/users/{user_id}"),
        ("DELETE", f"/api/users/{user_id}"),
    ]:
        r = await client.request(method, path, headers=headers, json={})
        assert r.status_code == 403, (method, path)
        assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_deleted_user_token_is_401(client, admin, registered):
    await client.delete(
        f"/api/users/{registered['user']['id']}", headers=bearer(admin["access_token"])
    )
    r = await client.get("/api/auth/me", headers=bearer(registered["access_token"]))
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Listing
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_admin_lists_users(client, admin, registered):
    r = await client.get("/api/users", headers=bearer(admin["access_token"]))
    assert r.status_code == 200
    data = r.json()["data"]
    emails = {u["email"] for u in data["users"]}
    assert emails == {admin["user"]["email"], registered["user"]["email"]}
    assert data["pagination"] == {"page": 1, "limit": 10, "total": 2, "pages": 1}
    for u in data["users"]:
        assert "password_hash" not in u
        assert "refresh_token" not in u


@pytest.mark.asyncio
async def test_pagination(client, admin):
    for _ in range(4):
        await _register(client)

    headers = bearer(admin["access_token"])
    r = await client.get("/api/users?page=2&limit=2", headers=headers)
    data = r.json()["data"]
    assert len(data["users"]) == 2
    assert data["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}

    r = await client.get("/api/users?page=3&limit=2", headers=headers)
    assert len(r.json()["data"]["users"]) == 1


@pytest.mark.asyncio
async def test_sort_by_name(client, admin):
    await _register(client, name="Charlie Brown")
    await _register(client, name="Alice Smith")
    await _register(client, name="Bob Jones")

    headers = bearer(admin["access_token"])
    r = await client.get("/api/users?sort=name&order=asc", headers=headers)
    names = [u["name"] for u in r.json()["data"]["users"]]
    assert names == sorted(names)

    r = await client.get("/api/users?sort=name&order=desc", headers=headers)
    names = [u["name"] for u in r.json()["data"]["users"]]
    assert names == sorted(names, reverse=True)


@pytest.mark.asyncio
async def test_search_matches_name_or_email(client, admin):
    await _register(client, name="Zed Quux")
    await _register(client, email="findme@example.org")
    await _register(client, name="Nobody Here")

    headers = bearer(admin["access_token"])
    r = await client.get("/api/users?search=quux", headers=headers)
    assert [u["name"] for u in r.json()["data"]["users"]] == ["Zed Quux"]

    r = await client.get("/api/users?search=FINDME", headers=headers)
    assert [u["email"] for u in r.json()["data"]["users"]] == ["findme@example.org"]


@pytest.mark.asyncio
async def test_search_wildcards_match_literally(client, admin):
    await _register(client, email="under_score@example.org")
    await _register(client, email="underxscore@example.org")

    headers = bearer(admin["access_token"])
    r = await client.get("/api/users?search=under_score", headers=headers)
    assert [u["email"] for u in r.json()["data"]["users"]] == ["under_score@example.org"]

    r = await client.get("/api/users?search=_", headers=headers)
    assert [u["email"] for u in r.json()["data"]["users"]] == ["under_score@example.org"]

    r = await client.get("/api/users?search=%25", headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["users"] == []

    r = await client.get("/api/users?city=%25", headers=headers)
    assert r.json()["data"]["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_state_and_city_filters(client, admin):
    await _register(client, state="Kerala", city="Kochi")
    await _register(client, state="Kerala", city="Thrissur")
    await _register(client, state="Goa", city="Panaji")

    headers = bearer(admin["access_token"])
    r = await client.get("/api/users?state=kerala", headers=headers)
    assert r.json()["data"]["pagination"]["total"] == 2

    r = await client.get("/api/users?state=kerala&city=koch", headers=headers)
    users = r.json()["data"]["users"]
    assert [u["city"] for u in users] == ["Kochi"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "query, field",
    [
        ("page=0", "page"),
        ("page=1000000001", "page"),
        ("page=99999999999999999999", "page"),
        ("limit=0", "limit"),
        ("limit=101", "limit"),
        ("sort=password_hash", "sort"),
        ("order=sideways", "order"),
    ],
)
async def test_invalid_list_query_is_400(client, admin, query, field):
    r = await client.get(f"/api/users?{query}", headers=bearer(admin["access_token"]))
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert [e["field"] for e in r.json()["errors"]] == [field]


# ═══════════════════════════════════════════════════════════
# Get / update / delete
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_get_user(client, admin, registered):
    r = await client.get(
        f"/api/users/{registered['user']['id']}", headers=bearer(admin["access_token"])
    )
    assert r.status_code == 200
    assert r.json()["data"]["user"]["email"] == registered["user"]["email"]


@pytest.mark.asyncio
async def test_get_unknown_user_is_404(client, admin):
    r = await client.get(
        "/api/users/00000000-0000-0000-0000-000000000000",
        headers=bearer(admin["access_token"]),
    )
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "User not found"}


@pytest.mark.asyncio
async def test_malformed_user_id_is_400(client, admin):
    r = await client.get("/api/users/not-a-uuid", headers=bearer(admin["access_token"]))
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid user ID"


@pytest.mark.asyncio
async def test_update_user(client, admin, registered):
    r = await client.put(
        f"/api/users/{registered['user']['id']}",
        headers=bearer(admin["access_token"]),
        json={"name": "Renamed Person", "city": "Mysuru"},
    )
    assert r.status_code == 200
    assert r.json()["message"] == "User updated successfully"
    user = r.json()["data"]["user"]
    assert user["name"] == "Renamed Person"
    assert user["city"] == "Mysuru"
    assert user["email"] == registered["user"]["email"]


@pytest.mark.asyncio
async def test_update_validates_fields(client, admin, registered):
    r = await client.put(
        f"/api/users/{registered['user']['id']}",
        headers=bearer(admin["access_token"]),
        json={"state": "   ", "pincode": "abc"},
    )
    assert r.status_code == 400
    errors = {e["field"]: e["message"] for e in r.json()["errors"]}
    assert errors == {
        "state": "State cannot be empty",
        "pincode": "Pincode must be 4-10 digits",
    }


@pytest.mark.asyncio
async def test_update_to_taken_email_is_rejected(client, admin, registered):
    other = await _register(client)
    r = await client.put(
        f"/api/users/{registered['user']['id']}",
        headers=bearer(admin["access_token"]),
        json={"email": other["user"]["email"]},
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Email or phone already exists"


@pytest.mark.asyncio
async def test_update_keeping_own_email_is_fine(client, admin, registered):
    r = await client.put(
        f"/api/users/{registered['user']['id']}",
        headers=bearer(admin["access_token"]),
        json={"email": registered["user"]["email"], "phone": registered["user"]["phone"]},
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_admin_can_promote_user(client, admin, registered):
    r = await client.put(
        f"/api/users/{registered['user']['id']}",
        headers=bearer(admin["access_token"]),
        json={"role": "admin"},
    )
    assert r.json()["data"]["user"]["role"] == "admin"

    # The promoted user's existing access token now passes the admin gate.
    r = await client.get("/api/users", headers=bearer(registered["access_token"]))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_update_does_not_touch_session(client, admin, registered):
    await client.put(
        f"/api/users/{registered['user']['id']}",
        headers=bearer(admin["access_token"]),
        json={"name": "Still Logged In"},
    )
    r = await client.post(
        "/api/auth/refresh", json={"refresh_token": registered["refresh_token"]}
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_update_unknown_user_is_404(client, admin):
    r = await client.put(
        "/api/users/00000000-0000-0000-0000-000000000000",
        headers=bearer(admin["access_token"]),
        json={"name": "Ghost Person"},
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_delete_user(client, admin, registered):
    headers = bearer(admin["access_token"])
    user_id = registered["user"]["id"]

    r = await client.delete(f"/api/users/{user_id}", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "User deleted successfully"}

    r = await client.get(f"/api/users/{user_id}", headers=headers)
    assert r.status_code == 404

    r = await client.delete(f"/api/users/{user_id}", headers=headers)
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Profile images
# ═══════════════════════════════════════════════════════════


def _stored_file(path: str) -> Path:
    assert path.startswith("/uploads/")
    return Path(settings.upload_dir) / path[len("/uploads/"):]


@pytest.mark.asyncio
async def test_register_with_profile_image(client):
    r = await client.post(
        "/api/auth/register",
        data=profile(),
        files={"profile_image": ("me.png", PNG, "image/png")},
    )
    assert r.status_code == 201
    path = r.json()["data"]["user"]["profile_image"]
    assert path.endswith(".png")
    assert _stored_file(path).read_bytes() == PNG

    served = await client.get(path)
    assert served.status_code == 200
    assert served.content == PNG


@pytest.mark.asyncio
async def test_register_rejects_non_image(client):
    r = await client.post(
        "/api/auth/register",
        data=profile(),
        files={"profile_image": ("notes.txt", b"hello", "text/plain")},
    )
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "profile_image"


@pytest.mark.asyncio
async def test_register_rejects_oversized_image(client, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", 16)
    r = await client.post(
        "/api/auth/register",
        data=profile(),
        files={"profile_image": ("big.png", PNG, "image/png")},
    )
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "profile_image"


@pytest.mark.asyncio
async def test_oversized_image_is_not_read_to_the_end(monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", 32)
    monkeypatch.setattr(uploads, "CHUNK_SIZE", 10)
    body = io.BytesIO(b"x" * 1000)
    upload = UploadFile(
        file=body, filename="big.png", headers=Headers({"content-type": "image/png"})
    )

    with pytest.raises(ValidationFailed):
        await uploads.save_image(upload)
    assert body.tell() == 40


@pytest.mark.asyncio
async def test_chunked_image_is_saved_intact(monkeypatch):
    monkeypatch.setattr(uploads, "CHUNK_SIZE", 10)
    upload = UploadFile(
        file=io.BytesIO(PNG), filename="me.png", headers=Headers({"content-type": "image/png"})
    )

    path = await uploads.save_image(upload)
    assert (Path(settings.upload_dir) / Path(path).name).read_bytes() == PNG


@pytest.mark.asyncio
async def test_failed_registration_removes_uploaded_image(client, registered):
    before = set(os.listdir(settings.upload_dir))
    r = await client.post(
        "/api/auth/register",
        data=profile(email=registered["user"]["email"]),
        files={"profile_image": ("me.png", PNG, "image/png")},
    )
    assert r.status_code == 400
    assert set(os.listdir(settings.upload_dir)) == before


@pytest.mark.asyncio
async def test_update_replaces_and_deletes_old_image(client, admin):
    r = await client.post(
        "/api/auth/register",
        data=profile(),
        files={"profile_image": ("old.png", PNG, "image/png")},
    )
    user = r.json()["data"]["user"]
    old_file = _stored_file(user["profile_image"])
    assert old_file.exists()

    r = await client.put(
        f"/api/users/{user['id']}",
        headers=bearer(admin["access_token"]),
        data={"city": "Hubli"},
        files={"profile_image": ("new.gif", b"GIF89a" + b"\x00" * 16, "image/gif")},
    )
    assert r.status_code == 200
    updated = r.json()["data"]["user"]
    assert updated["city"] == "Hubli"
    assert updated["profile_image"].endswith(".gif")
    assert _stored_file(updated["profile_image"]).exists()
    assert not old_file.exists()


@pytest.mark.asyncio
async def test_delete_removes_image(client, admin):
    r = await client.post(
        "/api/auth/register",
        data=profile(),
        files={"profile_image": ("me.png", PNG, "image/png")},
    )
    user = r.json()["data"]["user"]
    stored = _stored_file(user["profile_image"])

    r = await client.delete(f"/api/users/{user['id']}", headers=bearer(admin["access_token"]))
    assert r.status_code == 200
    assert not stored.exists()
