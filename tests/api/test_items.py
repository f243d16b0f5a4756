from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from stockroom.models.organization import Role
from tests.conftest import add_test_member, auth_headers, create_test_org, create_test_user


@pytest.fixture
def acme():
    owner = create_test_user("owner@example.com")
    member = create_test_user("member@example.com")
    org = create_test_org(owner, slug="acme")
    add_test_member(org.id, member, Role.MEMBER)
    return org, owner, member


def test_create_list_get_delete(client: TestClient, acme) -> None:
    org, owner, member = acme
    headers = auth_headers(owner, org.id)

    resp = client.post(
        "/v1/items", headers=headers, json={"name": "Bolt", "sku": "B-1", "quantity": 12}
    )
    assert resp.status_code == 201
    item = resp.json()
    assert item["quantity"] == 12

    listed = client.get("/v1/items", headers=auth_headers(member, org.id))
    assert [i["id"] for i in listed.json()] == [item["id"]]

    resp = client.get(f"/v1/items/{item['id']}", headers=auth_headers(member, org.id))
    assert resp.status_code == 200
    assert resp.json()["sku"] == "B-1"

    assert client.delete(f"/v1/items/{item['id']}", headers=headers).status_code == 204
    assert client.get(f"/v1/items/{item['id']}", headers=headers).status_code == 404


def test_duplicate_sku_is_conflict(client: TestClient, acme) -> None:
    org, owner, _ = acme
    headers = auth_headers(owner, org.id)
    client.post("/v1/items", headers=headers, json={"name": "Bolt", "sku": "B-1"})
    resp = client.post("/v1/items", headers=headers, json={"name": "Other", "sku": "B-1"})
    assert resp.status_code == 409


def test_same_sku_allowed_in_other_org(client: TestClient, acme) -> None:
    org, owner, _ = acme
    other = create_test_org(owner, slug="other")
    body = {"name": "Bolt", "sku": "B-1"}
    first = client.post("/v1/items", headers=auth_headers(owner, org.id), json=body)
    second = client.post("/v1/items", headers=auth_headers(owner, other.id), json=body)
    assert first.status_code == second.status_code == 201


def test_negative_quantity_is_rejected(client: TestClient, acme) -> None:
    org, owner, _ = acme
    resp = client.post(
        "/v1/items",
        headers=auth_headers(owner, org.id),
        json={"name": "Bolt", "sku": "B-1", "quantity": -1},
    )
    assert resp.status_code == 422


def test_member_cannot_delete(client: TestClient, acme) -> None:
    org, owner, member = acme
    item_id = client.post(
        "/v1/items", headers=auth_headers(owner, org.id), json={"name": "Bolt", "sku": "B-1"}
    ).json()["id"]
    resp = client.delete(f"/v1/items/{item_id}", headers=auth_headers(member, org.id))
    assert resp.status_code == 403


def test_delete_missing_item_is_404(client: TestClient, acme) -> None:
    org, owner, _ = acme
    resp = client.delete(f"/v1/items/{uuid4()}", headers=auth_headers(owner, org.id))
    assert resp.status_code == 404
