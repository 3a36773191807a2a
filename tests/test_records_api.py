"""Tests for the apps, shared secret and rues endpoints."""

from __future__ import annotations

import pytest

from rapids.db.queries import apps as app_queries


# ---------------------------------------------------------------------------
# Apps
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_app_crud(client, db):
    resp = await client.post("/v1/apps", json={"name": "billing", "public_key": "pub", "private_key": "priv"})
    assert resp.status_code == 201
    app = resp.json()
    assert app["name"] == "billing"
    assert app["private_key"] == "priv"

    # Private key is encrypted at rest
    row = await app_queries.get_app(db, app["app_id"])
    assert row["private_key_encrypted"] != "priv"

    resp = await client.get(f"/v1/apps/{app['app_id']}")
    assert resp.status_code == 200
    assert resp.json()["public_key"] == "pub"

    resp = await client.patch(f"/v1/apps/{app['app_id']}", json={"private_key": "priv2", "name": "billing-v2"})
    assert resp.status_code == 200
    assert resp.json()["private_key"] == "priv2"
    assert resp.json()["name"] == "billing-v2"
    assert resp.json()["public_key"] == "pub"

    resp = await client.get("/v1/apps")
    assert [a["app_id"] for a in resp.json()["items"]] == [app["app_id"]]

    assert (await client.delete(f"/v1/apps/{app['app_id']}")).status_code == 200
    assert (await client.get(f"/v1/apps/{app['app_id']}")).status_code == 404
    assert (await client.delete(f"/v1/apps/{app['app_id']}")).status_code == 404


@pytest.mark.asyncio
async def test_app_with_explicit_id(client):
    body = {"app_id": "app-1", "name": "a", "public_key": "p", "private_key": "s"}
    resp = await client.post("/v1/apps", json=body)
    assert resp.status_code == 201
    assert resp.json()["app_id"] == "app-1"

    resp = await client.post("/v1/apps", json=body)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_app_validation(client):
    resp = await client.post("/v1/apps", json={"name": "a", "public_key": "p"})
    assert resp.status_code == 400
    assert (await client.patch("/v1/apps/missing", json={"name": "x"})).status_code == 404


# ---------------------------------------------------------------------------
# Shared secrets
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_shared_secret_upsert(client):
    resp = await client.post("/v1/shared-secret", json={"private_key": "k1", "public_key": "p1"})
    assert resp.status_code == 201
    resp = await client.post("/v1/shared-secret", json={"private_key": "k1", "public_key": "p2"})
    assert resp.status_code == 201

    resp = await client.get("/v1/shared-secret/k1")
    assert resp.status_code == 200
    assert resp.json()["public_key"] == "p2"
    assert len((await client.get("/v1/shared-secret")).json()["items"]) == 1

    assert (await client.delete("/v1/shared-secret/k1")).status_code == 200
    assert (await client.get("/v1/shared-secret/k1")).status_code == 404
    assert (await client.delete("/v1/shared-secret/k1")).status_code == 404


@pytest.mark.asyncio
async def test_shared_secret_requires_fields(client):
    resp = await client.post("/v1/shared-secret", json={"public_key": "p"})
    assert resp.status_code == 400
    resp = await client.post("/v1/shared-secret", json={"private_key": "k"})
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Rues
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_rues_upsert(client):
    resp = await client.post("/v1/rues", json={"app_id": "app-1", "public_key": "p1"})
    assert resp.status_code == 201
    assert resp.json()["app_id"] == "app-1"
    await client.post("/v1/rues", json={"app_id": "app-1", "public_key": "p2"})

    resp = await client.get("/v1/rues/app-1")
    assert resp.json()["public_key"] == "p2"
    assert len((await client.get("/v1/rues")).json()["items"]) == 1

    assert (await client.delete("/v1/rues/app-1")).status_code == 200
    assert (await client.get("/v1/rues/app-1")).status_code == 404


@pytest.mark.asyncio
async def test_rues_requires_fields(client):
    assert (await client.post("/v1/rues", json={"public_key": "p"})).status_code == 400
    assert (await client.post("/v1/rues", json={"app_id": "a"})).status_code == 400
