"""Background worker tests.

Verifies:
1. Invitation emails queued by the API are drained by run_once
2. A failing handler drops the task without stopping the loop
3. The expiry sweep flips overdue invitations and survives store errors
4. The main loop exits once its stop event is set
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import timedelta

import pytest

from stockroom import worker
from stockroom.models.organization import Invitation, InvitationStatus, utcnow
from stockroom.repos.store import store
from stockroom.services import organization_service
from stockroom.services.notifications import INVITATION_EMAIL_QUEUE
from stockroom.services.task_queue import task_queue
from tests.conftest import create_test_org, create_test_user


def _invite(org_id, email: str) -> Invitation:
    return asyncio.run(organization_service.invite_member(store, org_id, email))


def test_run_once_drains_invitation_email(caplog: pytest.LogCaptureFixture) -> None:
    owner = create_test_user()
    org = create_test_org(owner, slug="acme")
    invitation = _invite(org.id, "bob@x.com")

    caplog.set_level(logging.INFO, logger="stockroom.worker")
    assert asyncio.run(worker.run_once(timeout=0)) == 1
    assert asyncio.run(task_queue.queue_length(INVITATION_EMAIL_QUEUE)) == 0
    assert any(str(invitation.id) in r.getMessage() for r in caplog.records)


def test_run_once_with_empty_queues_does_nothing() -> None:
    assert asyncio.run(worker.run_once(timeout=0)) == 0


def test_failing_handler_drops_task(monkeypatch: pytest.MonkeyPatch) -> None:
    owner = create_test_user()
    org = create_test_org(owner, slug="acme")
    _invite(org.id, "a@x.com")
    _invite(org.id, "b@x.com")

    async def boom(payload: dict) -> None:
        raise RuntimeError("smtp down")

    monkeypatch.setitem(worker.HANDLERS, INVITATION_EMAIL_QUEUE, boom)
    assert asyncio.run(worker.run_once(timeout=0)) == 1
    assert asyncio.run(task_queue.queue_length(INVITATION_EMAIL_QUEUE)) == 1


def test_sweep_expires_overdue_invitations() -> None:
    owner = create_test_user()
    org = create_test_org(owner, slug="acme")
    overdue = replace(
        Invitation.new(organization_id=org.id, email="old@x.com"),
        expires_at=utcnow() - timedelta(days=1),
    )

    async def _add() -> None:
        async with store.transaction() as repos:
            await repos.invitations.add(overdue)

    asyncio.run(_add())
    assert asyncio.run(worker.sweep_expired_invitations()) == 1

    async def _status():
        async with store.transaction() as repos:
            return (await repos.invitations.get(overdue.id)).status

    assert asyncio.run(_status()) == InvitationStatus.EXPIRED


def test_sweep_failure_is_logged_not_raised(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    async def broken(store, now=None) -> int:
        raise ConnectionError("db down")

    monkeypatch.setattr(organization_service, "expire_stale_invitations", broken)
    with caplog.at_level(logging.ERROR, logger="stockroom.worker"):
        assert asyncio.run(worker.sweep_expired_invitations()) == 0
    assert "sweep failed" in caplog.text


def test_run_worker_sweeps_then_stops_when_signalled() -> None:
    owner = create_test_user()
    org = create_test_org(owner, slug="acme")
    overdue = replace(
        Invitation.new(organization_id=org.id, email="old@x.com"),
        expires_at=utcnow() - timedelta(days=1),
    )

    async def scenario() -> InvitationStatus:
        async with store.transaction() as repos:
            await repos.invitations.add(overdue)
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, stop.set)
        await asyncio.wait_for(worker.run_worker(stop), timeout=5)
        async with store.transaction() as repos:
            return (await repos.invitations.get(overdue.id)).status

    assert asyncio.run(scenario()) == InvitationStatus.EXPIRED
