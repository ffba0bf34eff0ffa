"""
Tests for team aggregation, member profiles and the leaderboard.
"""

import asyncio

import pytest

from swimtrain.database.models import Intensity, Stroke, TeamRole, WorkoutType
from swimtrain.services import stats_service
from swimtrain.services.errors import Forbidden, ValidationError
from swimtrain.tests.factories import make_session, make_team, make_user


# ──────────────────────────────────────────────────────────────
# Team stats
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_team_stats_counts_member_sessions(db_session, session_factory):
    team = await make_team(db_session)
    jane = await make_user(db_session, "jane", team=team, role=TeamRole.CAPTAIN)
    bob = await make_user(db_session, "bob", team=team)
    outsider = await make_user(db_session, "outsider")
    await make_session(db_session, jane, distance=1000, stroke=Stroke.FREESTYLE)
    await make_session(db_session, bob, distance=None, stroke=Stroke.FREESTYLE)
    await make_session(db_session, bob, distance=500, stroke=Stroke.BACKSTROKE)
    await make_session(db_session, outsider, distance=9999, stroke=Stroke.BUTTERFLY)

    stats = await stats_service.get_team_stats(team.id, session_factory=session_factory)

    assert stats == {
        "members": 2,
        "total_sessions": 3,
        "total_distance": 1500,
        "weekly_sessions": 3,
        "weekly_distance": 1500,
        "most_common_stroke": "FREESTYLE",
    }


@pytest.mark.asyncio
async def test_team_stats_uses_union_of_explicit_and_membership_attribution(db_session, session_factory):
    sharks = await make_team(db_session, name="Sharks", invite_code="SHARKS01")
    dolphins = await make_team(db_session, name="Dolphins", invite_code="DOLPHIN1")
    jane = await make_user(db_session, "jane", team=sharks)
    # Recorded while on the Sharks, then Jane moved to the Dolphins
    await make_session(db_session, jane, distance=1200, team_id=sharks.id)
    jane.team_id = dolphins.id
    await db_session.commit()
    # Explicitly attributed to the Sharks by a user who is on no team
    drifter = await make_user(db_session, "drifter")
    await make_session(db_session, drifter, distance=300, team_id=sharks.id)

    shark_stats = await stats_service.get_team_stats(sharks.id, session_factory=session_factory)
    dolphin_stats = await stats_service.get_team_stats(dolphins.id, session_factory=session_factory)

    assert shark_stats["members"] == 0
    assert shark_stats["total_sessions"] == 2
    assert shark_stats["total_distance"] == 1500
    # Double attribution: Jane's session also counts for her current team
    assert dolphin_stats["members"] == 1
    assert dolphin_stats["total_sessions"] == 1
    assert dolphin_stats["total_distance"] == 1200


@pytest.mark.asyncio
async def test_team_weekly_window_uses_creation_time(db_session, session_factory):
    team = await make_team(db_session)
    jane = await make_user(db_session, "jane", team=team)
    await make_session(db_session, jane, distance=1000, created_days_ago=1)
    # Logged late: dated today but created 10 days ago
    await make_session(db_session, jane, distance=400, created_days_ago=10)

    stats = await stats_service.get_team_stats(team.id, session_factory=session_factory)

    assert stats["total_sessions"] == 2
    assert stats["weekly_sessions"] == 1
    assert stats["weekly_distance"] == 1000


@pytest.mark.asyncio
async def test_team_stats_empty_team(db_session, session_factory):
    team = await make_team(db_session)
    stats = await stats_service.get_team_stats(team.id, session_factory=session_factory)
    assert stats == {
        "members": 0,
        "total_sessions": 0,
        "total_distance": 0,
        "weekly_sessions": 0,
        "weekly_distance": 0,
        "most_common_stroke": None,
    }


@pytest.mark.asyncio
async def test_stroke_tie_broken_alphabetically(db_session, session_factory):
    team = await make_team(db_session)
    jane = await make_user(db_session, "jane", team=team)
    await make_session(db_session, jane, stroke=Stroke.FREESTYLE)
    await make_session(db_session, jane, stroke=Stroke.BREASTSTROKE)
    await make_session(db_session, jane, stroke=None)

    stats = await stats_service.get_team_stats(team.id, session_factory=session_factory)

    assert stats["most_common_stroke"] == "BREASTSTROKE"


@pytest.mark.asyncio
async def test_stroke_failure_degrades_to_none(db_session, session_factory, monkeypatch):
    team = await make_team(db_session)
    jane = await make_user(db_session, "jane", team=team)
    await make_session(db_session, jane, distance=800, stroke=Stroke.FREESTYLE)

    def broken(rows):
        raise RuntimeError("stroke query failed")

    monkeypatch.setattr(stats_service, "pick_most_common_stroke", broken)

    stats = await stats_service.get_team_stats(team.id, session_factory=session_factory)

    assert stats["most_common_stroke"] is None
    assert stats["total_sessions"] == 1
    assert stats["total_distance"] == 800


@pytest.mark.asyncio
async def test_other_component_failure_fails_the_call(monkeypatch):
    async def broken(session_factory, team_id):
        raise RuntimeError("member count failed")

    async def totals(session_factory, team_id, since=None):
        return {"sessions": 0, "distance": 0}

    async def stroke(session_factory, team_id):
        return None

    monkeypatch.setattr(stats_service, "_count_members", broken)
    monkeypatch.setattr(stats_service, "_session_totals", totals)
    monkeypatch.setattr(stats_service, "_most_common_stroke", stroke)

    with pytest.raises(RuntimeError, match="member count failed"):
        await stats_service.get_team_stats("team-1", session_factory=lambda: None)


@pytest.mark.asyncio
async def test_component_failure_cancels_pending_queries(monkeypatch):
    cancelled = []

    async def broken(session_factory, team_id):
        await asyncio.sleep(0)
        raise RuntimeError("member count failed")

    async def slow_totals(session_factory, team_id, since=None):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(since)
            raise
        return {"sessions": 0, "distance": 0}

    async def stroke(session_factory, team_id):
        return None

    monkeypatch.setattr(stats_service, "_count_members", broken)
    monkeypatch.setattr(stats_service, "_session_totals", slow_totals)
    monkeypatch.setattr(stats_service, "_most_common_stroke", stroke)

    with pytest.raises(RuntimeError, match="member count failed"):
        await asyncio.wait_for(
            stats_service.get_team_stats("team-1", session_factory=lambda: None), timeout=5
        )

    assert len(cancelled) == 2


@pytest.mark.asyncio
async def test_team_stats_defaults_to_application_session_factory(db_session):
    """test_engine points db.AsyncSessionLocal at the test database."""
    team = await make_team(db_session)
    jane = await make_user(db_session, "jane", team=team)
    await make_session(db_session, jane, distance=250)

    stats = await stats_service.get_team_stats(team.id)

    assert stats["total_distance"] == 250


# ──────────────────────────────────────────────────────────────
# Member profile
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_member_profile(db_session):
    team = await make_team(db_session)
    jane = await make_user(db_session, "jane", team=team, first_name="Jane")
    bob = await make_user(db_session, "bob", team=team)
    await make_session(
        db_session, bob, title="recent", distance=1000, duration=40,
        workout_type=WorkoutType.SPRINT, intensity=Intensity.HARD, days_ago=1,
    )
    await make_session(db_session, bob, title="old", distance=3000, duration=80, workout_type=WorkoutType.SPRINT, days_ago=20)
    await make_session(db_session, bob, title="drill", distance=None, duration=30, workout_type=WorkoutType.TECHNIQUE, days_ago=2)

    profile = await stats_service.get_member_profile(db_session, jane.id, bob.id)

    assert profile["username"] == "bob"
    assert profile["role"] == "MEMBER"
    assert profile["stats"] == {
        "total_sessions": 3,
        "total_distance": 4000,
        "total_duration": 150,
        "avg_distance": 1333,
        "weekly_distance": 1000,
        "weekly_duration": 70,
        "weekly_session_count": 2,
        "workout_types": {"SPRINT": 2, "TECHNIQUE": 1},
    }
    assert [s["title"] for s in profile["recent_sessions"]] == ["recent", "drill", "old"]
    assert profile["recent_sessions"][0]["intensity"] == "HARD"


@pytest.mark.asyncio
async def test_member_profile_limits_recent_sessions(db_session):
    team = await make_team(db_session)
    jane = await make_user(db_session, "jane", team=team)
    for day in range(12):
        await make_session(db_session, jane, title=f"day {day}", days_ago=day)

    profile = await stats_service.get_member_profile(db_session, jane.id, jane.id)

    assert len(profile["recent_sessions"]) == 10
    assert profile["recent_sessions"][0]["title"] == "day 0"
    assert profile["stats"]["total_sessions"] == 12


@pytest.mark.asyncio
async def test_member_profile_empty_stats(db_session):
    team = await make_team(db_session)
    jane = await make_user(db_session, "jane", team=team)
    bob = await make_user(db_session, "bob", team=team)

    profile = await stats_service.get_member_profile(db_session, jane.id, bob.id)

    assert profile["stats"]["avg_distance"] == 0
    assert profile["stats"]["workout_types"] == {}
    assert profile["recent_sessions"] == []


@pytest.mark.asyncio
async def test_member_profile_requires_shared_team(db_session):
    sharks = await make_team(db_session, invite_code="SHARKS01")
    dolphins = await make_team(db_session, name="Dolphins", invite_code="DOLPHIN1")
    jane = await make_user(db_session, "jane", team=sharks)
    bob = await make_user(db_session, "bob", team=dolphins)
    loner = await make_user(db_session, "loner")
    other_loner = await make_user(db_session, "other_loner")

    with pytest.raises(Forbidden):
        await stats_service.get_member_profile(db_session, jane.id, bob.id)
    with pytest.raises(Forbidden):
        await stats_service.get_member_profile(db_session, loner.id, other_loner.id)


@pytest.mark.asyncio
async def test_member_profile_unknown_id_looks_like_outsider(db_session):
    sharks = await make_team(db_session, invite_code="SHARKS01")
    dolphins = await make_team(db_session, name="Dolphins", invite_code="DOLPHIN1")
    jane = await make_user(db_session, "jane", team=sharks)
    bob = await make_user(db_session, "bob", team=dolphins)

    with pytest.raises(Forbidden) as outsider:
        await stats_service.get_member_profile(db_session, jane.id, bob.id)
    with pytest.raises(Forbidden) as unknown:
        await stats_service.get_member_profile(db_session, jane.id, "missing")

    assert unknown.value.message == outsider.value.message
    assert unknown.value.status_code == 403


# ──────────────────────────────────────────────────────────────
# Leaderboard
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_leaderboard_orders_by_distance_then_count_then_username(db_session):
    team = await make_team(db_session)
    amy = await make_user(db_session, "amy", team=team)
    bob = await make_user(db_session, "bob", team=team, role=TeamRole.CAPTAIN)
    cat = await make_user(db_session, "cat", team=team)
    dan = await make_user(db_session, "dan", team=team)
    await make_session(db_session, amy, distance=1000)
    await make_session(db_session, bob, distance=500)
    await make_session(db_session, bob, distance=500)
    await make_session(db_session, cat, distance=2000, days_ago=20)

    week = await stats_service.get_team_leaderboard(db_session, team.id, "week")
    month = await stats_service.get_team_leaderboard(db_session, team.id, "month")

    assert [(e["rank"], e["username"], e["total_distance"]) for e in week] == [
        (1, "bob", 1000),
        (2, "amy", 1000),
        (3, "cat", 0),
        (4, "dan", 0),
    ]
    assert week[0]["session_count"] == 2
    assert week[0]["role"] == "CAPTAIN"
    assert [e["username"] for e in month] == ["cat", "bob", "amy", "dan"]
    assert dan.id == month[-1]["user_id"]


@pytest.mark.asyncio
async def test_leaderboard_rejects_unknown_period(db_session):
    team = await make_team(db_session)
    with pytest.raises(ValidationError):
        await stats_service.get_team_leaderboard(db_session, team.id, "decade")
