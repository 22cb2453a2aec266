"""Tests for user directory and device registry endpoints."""

from __future__ import annotations

import httpx
import pytest


async def _queued(client: httpx.AsyncClient) -> list[dict[str, object]]:
    resp = await client.get("/api/commands/queue")
    assert resp.status_code == 200
    items: list[dict[str, object]] = resp.json()
    return items


@pytest.mark.asyncio
async def test_create_and_get_user(client: httpx.AsyncClient) -> None:
    resp = await client.post("/api/users", json={"pin": "7", "name": "Ann"})
    assert resp.status_code == 201
    assert resp.json()["pin"] == "7"
    assert resp.json()["has_photo"] is False

    resp = await client.get("/api/users/7")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Ann"

    users = (await client.get("/api/users")).json()
    assert [u["pin"] for u in users] == ["7"]

    queued = await _queued(client)
    assert [q["category"] for q in queued] == ["USER_UPSERT"]


@pytest.mark.asyncio
async def test_create_user_validation(client: httpx.AsyncClient) -> None:
    assert (await client.post("/api/users", json={"name": "Ann"})).status_code == 400
    assert (await client.post("/api/users", json={"pin": "7"})).status_code == 400
    assert (
        await client.post("/api/users", json={"pin": "7 8", "name": "Ann"})
    ).status_code == 400
    assert (
        await client.post("/api/users", json={"pin": "7", "name": 5})
    ).status_code == 400


@pytest.mark.asyncio
async def test_duplicate_user_conflicts(client: httpx.AsyncClient) -> None:
    await client.post("/api/users", json={"pin": "7", "name": "Ann"})
    resp = await client.post("/api/users", json={"pin": "7", "name": "Bob"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_update_user_queues_only_changes(client: httpx.AsyncClient) -> None:
    await client.post("/api/users", json={"pin": "7", "name": "Ann"})

    resp = await client.put("/api/users/7", json={"photo": "QUJD"})
    assert resp.status_code == 200
    assert resp.json()["has_photo"] is True
    assert sorted(q["category"] for q in await _queued(client)) == [
        "USER_PHOTO", "USER_UPSERT",
    ]

    resp = await client.put("/api/users/7", json={"name": "Anne"})
    assert resp.json()["name"] == "Anne"
    queued = await _queued(client)
    assert len(queued) == 2
    upsert = next(q for q in queued if q["category"] == "USER_UPSERT")
    assert "Name=Anne" in str(upsert["payload"])


@pytest.mark.asyncio
async def test_update_user_errors(client: httpx.AsyncClient) -> None:
    assert (await client.put("/api/users/9", json={"name": "X"})).status_code == 404
    await client.post("/api/users", json={"pin": "7", "name": "Ann"})
    assert (await client.put("/api/users/7", json={})).status_code == 400


@pytest.mark.asyncio
async def test_delete_user_supersedes_nothing_else(client: httpx.AsyncClient) -> None:
    await client.post("/api/users", json={"pin": "7", "name": "Ann"})
    resp = await client.delete("/api/users/7")
    assert resp.status_code == 200
    assert resp.json()["pin"] == "7"

    assert (await client.get("/api/users/7")).status_code == 404
    assert (await client.delete("/api/users/7")).status_code == 404
    categories = [q["category"] for q in await _queued(client)]
    assert categories == ["USER_UPSERT", "USER_DELETE"]


@pytest.mark.asyncio
async def test_devices_listed_after_contact(client: httpx.AsyncClient) -> None:
    assert (await client.get("/api/devices")).json() == []
    await client.get("/iclock/getrequest", params={"SN": "D9"})
    devices = (await client.get("/api/devices")).json()
    assert devices[0]["serial_number"] == "D9"
    assert devices[0]["last_poll_at"] is not None
