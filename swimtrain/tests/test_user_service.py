"""
Unit tests for user service.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from swimtrain.services import user_service
from swimtrain.services.errors import Conflict, NotFound
from swimtrain.tests.factories import make_user, make_session


@pytest.mark.asyncio
async def test_get_user_by_email_is_case_insensitive(db_session):
    user = await make_user(db_session, "jane", email="jane@example.com")
    found = await user_service.get_user_by_email(db_session, "  JANE@Example.com ")
    assert found["id"] == user.id
    assert await user_service.get_user_by_email(db_session, "") is None


@pytest.mark.asyncio
async def test_upsert_creates_then_updates_only_given_fields(db_session):
    created = await user_service.upsert_user(
        db_session, user_id="u1", email="Jane@Example.com", username="jane", first_name="Jane"
    )
    assert created["email"] == "jane@example.com"
    assert created["role"] == "MEMBER"

    updated = await user_service.upsert_user(db_session, user_id="u1", email="jane@example.com", last_name="Doe")
    assert updated["username"] == "jane"
    assert updated["first_name"] == "Jane"
    assert updated["last_name"] == "Doe"


@pytest.mark.asyncio
async def test_upsert_requires_username_on_create(db_session):
    with pytest.raises(ValueError):
        await user_service.upsert_user(db_session, user_id="u1", email="jane@example.com")


@pytest.mark.asyncio
async def test_upsert_duplicate_email_raises_integrity_error(db_session):
    await make_user(db_session, "jane", email="jane@example.com")
    with pytest.raises(IntegrityError):
        await user_service.upsert_user(db_session, user_id="u2", email="jane@example.com", username="jane2")
    # Session is usable after the rollback
    assert await user_service.get_user_by_email(db_session, "jane@example.com") is not None


@pytest.mark.asyncio
async def test_update_profile(db_session):
    user = await make_user(db_session, "jane")
    updated = await user_service.update_profile(
        db_session, user.id, username="  fastjane ", first_name="Jane", last_name="Doe", avatar="a.png"
    )
    assert updated["username"] == "fastjane"
    assert updated["first_name"] == "Jane"
    assert updated["avatar"] == "a.png"


@pytest.mark.asyncio
async def test_update_profile_keeping_own_username(db_session):
    user = await make_user(db_session, "jane")
    updated = await user_service.update_profile(db_session, user.id, username="jane", first_name="J")
    assert updated["username"] == "jane"


@pytest.mark.asyncio
async def test_update_profile_username_taken_is_400(db_session):
    await make_user(db_session, "bob")
    user = await make_user(db_session, "jane")
    with pytest.raises(Conflict) as exc_info:
        await user_service.update_profile(db_session, user.id, username="bob")
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_update_profile_unknown_user(db_session):
    with pytest.raises(NotFound):
        await user_service.update_profile(db_session, "missing", username="ghost")


@pytest.mark.asyncio
async def test_delete_user_and_sessions(db_session):
    jane = await make_user(db_session, "jane")
    bob = await make_user(db_session, "bob")
    await make_session(db_session, jane)
    await make_session(db_session, jane)
    await make_session(db_session, bob)

    deleted = await user_service.delete_user_and_sessions(db_session, jane.id)

    assert deleted == 2
    assert await user_service.get_user_by_id(db_session, jane.id) is None
    assert [u["id"] for u in await user_service.list_users(db_session)] == [bob.id]

    with pytest.raises(NotFound):
        await user_service.delete_user_and_sessions(db_session, jane.id)
