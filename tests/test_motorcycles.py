"""
Tests for motorcycle visibility, edit permission and the session save flow
"""
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from database_models import Motorcycle, Team, TeamMembership
from services.usage_service import UsageService
from utils.shared_utils import utcnow
from conftest import auth_headers, create_user, reload_user


async def add_team(db, owner, members=(), inactive_members=()):
    team = Team(name="Factory", owner_id=owner.id, subscription_plan="premier", is_active=True)
    db.add(team)
    await db.flush()
    db.add(TeamMembership(team_id=team.id, user_id=owner.id, role="owner", status="active", joined_at=utcnow()))
    for member in members:
        db.add(TeamMembership(team_id=team.id, user_id=member.id, role="member", status="active", joined_at=utcnow()))
    for member in inactive_members:
        db.add(TeamMembership(team_id=team.id, user_id=member.id, role="member", status="pending"))
    await db.commit()
    return team


async def add_motorcycle(db, motorcycle_id, user_id=None, team_id=None, created_offset=0):
    db.add(Motorcycle(
        id=motorcycle_id, make="Yamaha", model="R1", bike_class="Superbike",
        number="46", variant="", user_id=user_id, team_id=team_id,
        created_at=utcnow() + timedelta(seconds=created_offset),
    ))
    await db.commit()


def session_payload(motorcycle_id="bike-1", **overrides):
    payload = {
        "event": "mugello-2025",
        "motorcycle_id": motorcycle_id,
        "session": "FP1",
        "front_spring": "10.5",
        "rear_preload": "12",
        "front_pressure": "2.1",
        "notes": "Chatter on entry to T1",
        "weather_temperature": "24",
    }
    payload.update(overrides)
    return payload


# -------------------------------------------------------------- motorcycles

async def test_visibility_rules(async_client, test_db):
    rider = await create_user(test_db, email="rider@example.com")
    teammate = await create_user(test_db, email="teammate@example.com")
    pending = await create_user(test_db, email="pending@example.com")
    stranger = await create_user(test_db, email="stranger@example.com")
    team = await add_team(test_db, teammate, members=[rider], inactive_members=[pending])

    await add_motorcycle(test_db, "own", user_id=rider.id, created_offset=3)
    await add_motorcycle(test_db, "team", team_id=team.id, created_offset=2)
    await add_motorcycle(test_db, "legacy", created_offset=1)
    await add_motorcycle(test_db, "foreign", user_id=stranger.id)

    rider_view = (await async_client.get("/api/motorcycles", headers=auth_headers(rider))).json()["data"]["motorcycles"]
    pending_view = (await async_client.get("/api/motorcycles", headers=auth_headers(pending))).json()["data"]["motorcycles"]

    assert [m["id"] for m in rider_view] == ["own", "team", "legacy"]
    assert {m["id"]: m["canEdit"] for m in rider_view} == {"own": True, "team": True, "legacy": False}
    assert [m["id"] for m in pending_view] == ["legacy"]


async def test_create_personal_and_team_motorcycles(async_client, test_db):
    rider = await create_user(test_db, email="rider@example.com")
    other = await create_user(test_db, email="other@example.com")
    team = await add_team(test_db, other, members=[rider])
    foreign_team = await add_team(test_db, other)

    personal = await async_client.post("/api/motorcycles", headers=auth_headers(rider), json={
        "make": "Honda", "model": "CBR1000RR", "class": "Superstock", "number": "93",
    })
    shared = await async_client.post("/api/motorcycles", headers=auth_headers(rider), json={
        "make": "Ducati", "model": "Panigale V4", "team_id": team.id,
    })
    denied = await async_client.post("/api/motorcycles", headers=auth_headers(rider), json={
        "make": "KTM", "model": "RC8", "team_id": foreign_team.id,
    })

    assert personal.status_code == 200
    assert personal.json()["data"]["motorcycle"]["userId"] == rider.id
    assert personal.json()["data"]["motorcycle"]["class"] == "Superstock"
    assert shared.json()["data"]["motorcycle"]["teamId"] == team.id
    assert shared.json()["data"]["motorcycle"]["userId"] is None
    assert denied.status_code == 403


async def test_update_requires_edit_permission(async_client, test_db):
    owner = await create_user(test_db, email="owner@example.com")
    stranger = await create_user(test_db, email="stranger@example.com")
    await add_motorcycle(test_db, "bike-1", user_id=owner.id)
    await add_motorcycle(test_db, "legacy")

    updated = await async_client.post("/api/motorcycles", headers=auth_headers(owner), json={
        "id": "bike-1", "make": "Yamaha", "model": "R1M",
    })
    hijack = await async_client.post("/api/motorcycles", headers=auth_headers(stranger), json={
        "id": "bike-1", "make": "Yamaha", "model": "Stolen",
    })
    legacy_edit = await async_client.post("/api/motorcycles", headers=auth_headers(owner), json={
        "id": "legacy", "make": "Yamaha", "model": "R6",
    })

    assert updated.json()["data"]["motorcycle"]["model"] == "R1M"
    assert hijack.status_code == 403
    assert legacy_edit.status_code == 403


async def test_delete_motorcycle_removes_sessions(async_client, test_db):
    owner = await create_user(test_db)
    await add_motorcycle(test_db, "bike-1", user_id=owner.id)
    await async_client.post("/api/sessions", headers=auth_headers(owner), json=session_payload())

    response = await async_client.delete("/api/motorcycles/bike-1", headers=auth_headers(owner))
    sessions = await async_client.get("/api/sessions", headers=auth_headers(owner))

    assert response.status_code == 200
    assert sessions.json()["data"]["sessions"] == []
    missing = await async_client.delete("/api/motorcycles/bike-1", headers=auth_headers(owner))
    assert missing.status_code == 404


# ----------------------------------------------------------------- sessions

async def test_session_save_upserts_and_counts_usage(async_client, test_db):
    rider = await create_user(test_db, usage_count=0)
    await add_motorcycle(test_db, "bike-1", user_id=rider.id)

    first = await async_client.post("/api/sessions", headers=auth_headers(rider), json=session_payload())
    second = await async_client.post(
        "/api/sessions", headers=auth_headers(rider), json=session_payload(front_spring="11.0")
    )

    assert first.status_code == 200
    assert first.json()["data"]["session"]["id"] == "mugello-2025_bike-1_FP1"
    assert second.json()["data"]["session"]["front_spring"] == "11.0"

    listed = await async_client.get("/api/sessions", headers=auth_headers(rider), params={"event_id": "mugello-2025"})
    assert len(listed.json()["data"]["sessions"]) == 1
    assert (await reload_user(test_db, rider.id)).usage_count == 2


async def test_session_save_blocked_at_usage_limit(async_client, test_db):
    """With 999 of 1000 saves used, one more save succeeds and the next is refused."""
    rider = await create_user(test_db, usage_count=999, usage_limit=1000)
    await add_motorcycle(test_db, "bike-1", user_id=rider.id)

    allowed = await async_client.post("/api/sessions", headers=auth_headers(rider), json=session_payload())
    blocked = await async_client.post(
        "/api/sessions", headers=auth_headers(rider), json=session_payload(session="FP2")
    )

    assert allowed.status_code == 200
    assert blocked.status_code == 403
    body = blocked.json()
    assert body["error"] == "Usage limit reached"
    assert body["usageCount"] == 1000
    assert body["usageLimit"] == 1000


async def test_session_save_blocked_when_trial_expired(async_client, test_db):
    rider = await create_user(test_db, trial_end_date=utcnow() - timedelta(days=1))
    await add_motorcycle(test_db, "bike-1", user_id=rider.id)

    response = await async_client.post("/api/sessions", headers=auth_headers(rider), json=session_payload())

    assert response.status_code == 403
    body = response.json()
    assert body["error"] == "Subscription expired"
    assert body["subscriptionStatus"] == {"isActive": False, "daysRemaining": 0, "status": "trial"}


async def test_admin_saves_without_usage(async_client, test_db):
    admin = await create_user(test_db, is_admin=True, subscription_status="expired", usage_count=0)
    await add_motorcycle(test_db, "bike-1", user_id=admin.id)

    response = await async_client.post("/api/sessions", headers=auth_headers(admin), json=session_payload())

    assert response.status_code == 200
    assert (await reload_user(test_db, admin.id)).usage_count == 0


async def test_session_save_survives_usage_failure(async_client, test_db):
    rider = await create_user(test_db, usage_count=5)
    await add_motorcycle(test_db, "bike-1", user_id=rider.id)
    failure = OperationalError("UPDATE users", {}, Exception("database is locked"))

    with patch.object(UsageService, "_increment", side_effect=failure):
        response = await async_client.post("/api/sessions", headers=auth_headers(rider), json=session_payload())

    assert response.status_code == 200
    assert (await reload_user(test_db, rider.id)).usage_count == 5
    listed = await async_client.get("/api/sessions", headers=auth_headers(rider))
    assert len(listed.json()["data"]["sessions"]) == 1


async def test_session_save_requires_edit_permission(async_client, test_db):
    owner = await create_user(test_db, email="owner@example.com")
    stranger = await create_user(test_db, email="stranger@example.com")
    await add_motorcycle(test_db, "bike-1", user_id=owner.id)

    response = await async_client.post("/api/sessions", headers=auth_headers(stranger), json=session_payload())

    assert response.status_code == 403
    assert (await reload_user(test_db, stranger.id)).usage_count == 0


async def test_session_save_accepts_long_motorcycle_id(async_client, test_db):
    rider = await create_user(test_db)
    long_id = "bike-" + "x" * 245
    await add_motorcycle(test_db, long_id, user_id=rider.id)

    response = await async_client.post(
        "/api/sessions", headers=auth_headers(rider), json=session_payload(motorcycle_id=long_id)
    )

    assert response.status_code == 200
    assert response.json()["data"]["session"]["id"] == f"mugello-2025_{long_id}_FP1"
