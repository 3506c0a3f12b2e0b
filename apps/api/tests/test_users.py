from __future__ import annotations

import pytest

from conftest import auth, uid

from taskhive.security import create_access_token


@pytest.mark.anyio
async def test_health_and_version(client) -> None:
  res = await client.get("/health")
  assert res.status_code == 200
  assert res.json() == {"ok": True}
  assert res.headers["X-Content-Type-Options"] == "nosniff"
  assert res.headers["X-Frame-Options"] == "DENY"
  assert res.headers["X-Response-Time"].endswith("ms")

  res = await client.get("/version")
  assert res.status_code == 200
  assert "version" in res.json()


@pytest.mark.anyio
async def test_me(client) -> None:
  res = await client.get("/users/me", headers=auth("alice"))
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["id"] == uid("alice")
  assert body["email"] == "alice@taskhive.local"
  assert body["role"] == "member"


@pytest.mark.anyio
async def test_token_for_unknown_user_is_rejected(client) -> None:
  tok = create_access_token("00000000-0000-4000-8000-00000000dead")
  res = await client.get("/users/me", headers={"Authorization": f"Bearer {tok}"})
  assert res.status_code == 401


@pytest.mark.anyio
async def test_search_users(client) -> None:
  res = await client.get("/users/search", params={"query": "CAROL"}, headers=auth("alice"))
  assert res.status_code == 200, res.text
  assert [u["id"] for u in res.json()] == [uid("carol")]

  res = await client.get("/users/search", params={"query": "example.com"}, headers=auth("alice"))
  assert {u["name"] for u in res.json()} == {"Bob", "Carol Jones"}

  res = await client.get("/users/search", params={"query": "  "}, headers=auth("alice"))
  assert res.json() == []


@pytest.mark.anyio
async def test_update_profile(client) -> None:
  res = await client.put("/users/profile", json={"name": "  Bobby ", "avatarUrl": "https://img/b.png"}, headers=auth("bob"))
  assert res.status_code == 200, res.text
  assert res.json()["name"] == "Bobby"
  assert res.json()["avatarUrl"] == "https://img/b.png"

  res = await client.put("/users/profile", json={"name": " "}, headers=auth("bob"))
  assert res.status_code == 400
  assert res.json()["detail"] == "Name cannot be empty"

  res = await client.get(f"/users/{uid('bob')}", headers=auth("alice"))
  assert res.json()["name"] == "Bobby"


@pytest.mark.anyio
async def test_list_users_is_admin_only(client) -> None:
  res = await client.get("/users", headers=auth("alice"))
  assert res.status_code == 403
  assert res.json()["detail"] == "Admin required"

  res = await client.get("/users", headers=auth("admin"))
  assert res.status_code == 200, res.text
  assert len(res.json()) == 4


@pytest.mark.anyio
async def test_get_user(client) -> None:
  res = await client.get(f"/users/{uid('carol')}", headers=auth("alice"))
  assert res.status_code == 200
  assert res.json()["email"] == "carol.jones@example.com"

  res = await client.get("/users/nope", headers=auth("alice"))
  assert res.status_code == 404
