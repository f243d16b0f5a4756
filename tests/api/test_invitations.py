from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from stockroom.models.organization import Invitation, Role, utcnow
from stockroom.repos.store import store
from stockroom.services.notifications import INVITATION_EMAIL_QUEUE
from stockroom.services.task_queue import task_queue
from tests.conftest import add_test_member, auth_headers, create_test_org, create_test_user


@pytest.fixture
def acme():
    owner = create_test_user("owner@example.com")
    org = create_test_org(owner, slug="acme")
    return org, owner


def _invite(client: TestClient, org, inviter, email: str, role: str = "MEMBER"):
    return client.post(
        "/v1/organization/invitations",
        headers=auth_headers(inviter, org.id),
        json={"email": email, "role": role},
    )


def test_invite_and_accept(client: TestClient, acme) -> None:
    org, owner = acme
    bob = create_test_user("bob@x.com")

    resp = _invite(client, org, owner, "Bob@X.com")
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "PENDING"
    assert body["email"] == "bob@x.com"
    assert body["organization_id"] == str(org.id)
    assert asyncio.run(task_queue.queue_length(INVITATION_EMAIL_QUEUE)) == 1

    resp = client.post(f"/v1/invitations/{body['id']}/accept", headers=auth_headers(bob))
    assert resp.status_code == 200
    assert resp.json()["slug"] == "acme"

    resp = client.get("/v1/organization", headers=auth_headers(bob, org.id))
    assert resp.status_code == 200
    assert resp.json()["role"] == "MEMBER"


def test_second_accept_is_conflict(client: TestClient, acme) -> None:
    org, owner = acme
    bob = create_test_user("bob@x.com")
    invitation_id = _invite(client, org, owner, "bob@x.com").json()["id"]

    first = client.post(f"/v1/invitations/{invitation_id}/accept", headers=auth_headers(bob))
    second = client.post(f"/v1/invitations/{invitation_id}/accept", headers=auth_headers(bob))
    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["detail"] == "Invitation already processed"

    members = client.get("/v1/organization/members", headers=auth_headers(owner, org.id))
    assert len(members.json()) == 2


def test_expired_invitation_is_gone(client: TestClient, acme) -> None:
    org, _ = acme
    bob = create_test_user("bob@x.com")
    expired = replace(
        Invitation.new(organization_id=org.id, email="bob@x.com"),
        expires_at=utcnow() - timedelta(minutes=1),
    )

    async def _add() -> None:
        async with store.transaction() as repos:
            await repos.invitations.add(expired)

    asyncio.run(_add())
    resp = client.post(f"/v1/invitations/{expired.id}/accept", headers=auth_headers(bob))
    assert resp.status_code == 410
    assert client.get("/v1/organization", headers=auth_headers(bob, org.id)).status_code == 403


def test_existing_member_accepting_is_conflict(client: TestClient, acme) -> None:
    org, owner = acme
    invitation_id = _invite(client, org, owner, "owner@example.com").json()["id"]
    resp = client.post(
        f"/v1/invitations/{invitation_id}/accept", headers=auth_headers(owner)
    )
    assert resp.status_code == 409
    assert "already a member" in resp.json()["detail"]


def test_reinvite_reuses_pending_invitation(client: TestClient, acme) -> None:
    org, owner = acme
    first = _invite(client, org, owner, "bob@x.com").json()
    second = _invite(client, org, owner, "bob@x.com", role="ADMIN").json()
    assert second["id"] == first["id"]
    assert second["role"] == "ADMIN"

    listed = client.get("/v1/organization/invitations", headers=auth_headers(owner, org.id))
    assert [i["id"] for i in listed.json()] == [first["id"]]


@pytest.mark.parametrize(
    "payload",
    [
        {"email": "bob@x.com", "role": "OWNER"},
        {"email": "not-an-email", "role": "MEMBER"},
        {"email": "bob@x.com", "role": "GOD"},
    ],
    ids=["owner-role", "bad-email", "unknown-role"],
)
def test_invite_validation(client: TestClient, acme, payload: dict) -> None:
    org, owner = acme
    resp = client.post(
        "/v1/organization/invitations", headers=auth_headers(owner, org.id), json=payload
    )
    assert resp.status_code == 422


def test_admin_can_invite_member_cannot(client: TestClient, acme) -> None:
    org, _ = acme
    admin = create_test_user("admin@example.com")
    member = create_test_user("member@example.com")
    add_test_member(org.id, admin, Role.ADMIN)
    add_test_member(org.id, member, Role.MEMBER)

    assert _invite(client, org, admin, "a@x.com").status_code == 201
    assert _invite(client, org, member, "b@x.com").status_code == 403


def test_cancel_then_accept_is_conflict(client: TestClient, acme) -> None:
    org, owner = acme
    bob = create_test_user("bob@x.com")
    invitation_id = _invite(client, org, owner, "bob@x.com").json()["id"]

    resp = client.delete(
        f"/v1/organization/invitations/{invitation_id}", headers=auth_headers(owner, org.id)
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"

    resp = client.post(f"/v1/invitations/{invitation_id}/accept", headers=auth_headers(bob))
    assert resp.status_code == 409


def test_accept_unknown_invitation_is_404(client: TestClient) -> None:
    bob = create_test_user("bob@x.com")
    resp = client.post(
        "/v1/invitations/00000000-0000-0000-0000-000000000000/accept",
        headers=auth_headers(bob),
    )
    assert resp.status_code == 404


def test_accept_needs_no_org_header(client: TestClient, acme) -> None:
    org, owner = acme
    bob = create_test_user("bob@x.com")
    invitation_id = _invite(client, org, owner, "bob@x.com").json()["id"]
    # An unrelated header value does not matter for accept
    headers = auth_headers(bob, "not-a-uuid")
    resp = client.post(f"/v1/invitations/{invitation_id}/accept", headers=headers)
    assert resp.status_code == 200
