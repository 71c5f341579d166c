"""
Bulletin board tests

Covered:
1. Validation on post
2. Priority ordering, expiry and reader-side filters
3. Degrading read helpers
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from conftest import USER_ID
from runcoach.application.services.bulletin_board import BulletinBoard
from runcoach.domain.exceptions import ValidationError
from runcoach.domain.models import EntryType, Visibility, WhiteboardPayload, WhiteboardQuery


def payload(content="Sleep was short", entry_type=EntryType.OBSERVATION, **kwargs) -> WhiteboardPayload:
    return WhiteboardPayload(entry_type=entry_type, content=content, **kwargs)


class TestPost:
    """Validation and persistence"""

    async def test_post_returns_stored_entry(self, store):
        entry = await store.board.post(USER_ID, "health-agent", payload(
            title="Short sleep", priority=70, tags=("sleep",), structured_data={"hours": 5.5},
            requires_response=True,
        ), context_date="2026-10-14")

        assert entry.id
        assert entry.created_at
        assert entry.entry_type == "observation"
        assert entry.visibility == "all"

        [stored] = await store.board.query(USER_ID)
        assert stored == entry

    @pytest.mark.parametrize("priority", [-1, 101])
    async def test_priority_out_of_range(self, store, priority):
        with pytest.raises(ValidationError) as exc:
            await store.board.post(USER_ID, "health-agent", payload(priority=priority))
        assert exc.value.field == "priority"

    async def test_empty_content(self, store):
        with pytest.raises(ValidationError):
            await store.board.post(USER_ID, "health-agent", payload(content="   "))

    async def test_unknown_entry_type(self, store):
        with pytest.raises(ValidationError):
            await store.board.post(USER_ID, "health-agent", payload(entry_type="gossip"))

    async def test_invalid_post_is_not_stored(self, store):
        with pytest.raises(ValidationError):
            await store.board.post(USER_ID, "health-agent", payload(priority=500))
        assert await store.board.query(USER_ID) == []


class TestQuery:
    """Ordering, expiry and filters"""

    async def test_priority_then_newest(self, store):
        board = store.board
        low = await board.post(USER_ID, "training-coach", payload("low", priority=10))
        high_old = await board.post(USER_ID, "training-coach", payload("high old", priority=90))
        high_new = await board.post(USER_ID, "health-agent", payload("high new", priority=90))

        entries = await board.query(USER_ID)
        assert [e.id for e in entries] == [high_new.id, high_old.id, low.id]

    async def test_expired_entries_are_hidden(self, store):
        now = datetime.now(timezone.utc)
        entry = await store.board.post(USER_ID, "health-agent", payload(expires_at=now + timedelta(hours=1)))

        assert await store.board.query(USER_ID, now=now) == [entry]
        later = now + timedelta(hours=2)
        assert await store.board.query(USER_ID, now=later) == []
        assert await store.board.query(USER_ID, WhiteboardQuery(include_expired=True), now=later) == [entry]

    async def test_naive_expiry_is_treated_as_utc(self, store):
        now = datetime.now(timezone.utc)
        await store.board.post(USER_ID, "health-agent", payload(
            expires_at=(now + timedelta(minutes=30)).replace(tzinfo=None),
        ))
        assert len(await store.board.query(USER_ID, now=now)) == 1
        assert await store.board.query(USER_ID, now=now + timedelta(hours=1)) == []

    async def test_filters(self, store):
        board = store.board
        alert = await board.post(USER_ID, "health-agent", payload(
            "RHR up", entry_type=EntryType.ALERT, tags=("recovery", "hr"), requires_response=True,
        ), context_date="2026-10-14")
        plan = await board.post(USER_ID, "training-coach", payload(
            "Tempo moved", entry_type=EntryType.PLAN, visibility=Visibility.USER,
        ), context_date="2026-10-13")

        assert await board.query(USER_ID, WhiteboardQuery(authors=("health-agent",))) == [alert]
        assert await board.query(USER_ID, WhiteboardQuery(entry_types=("plan",))) == [plan]
        assert await board.query(USER_ID, WhiteboardQuery(tags=("hr",))) == [alert]
        assert await board.query(USER_ID, WhiteboardQuery(requires_response=True)) == [alert]
        assert await board.query(USER_ID, WhiteboardQuery(visibility=("user",))) == [plan]
        assert await board.query(USER_ID, WhiteboardQuery(context_date="2026-10-13")) == [plan]

    async def test_since_hours_window(self, store):
        await store.board.post(USER_ID, "health-agent", payload())
        now = datetime.now(timezone.utc)

        assert len(await store.board.query(USER_ID, WhiteboardQuery(since_hours=24), now=now)) == 1
        tomorrow = now + timedelta(hours=30)
        assert await store.board.query(USER_ID, WhiteboardQuery(since_hours=24), now=tomorrow) == []

    async def test_limit(self, store):
        for i in range(5):
            await store.board.post(USER_ID, "health-agent", payload(f"note {i}"))
        assert len(await store.board.query(USER_ID, WhiteboardQuery(limit=3))) == 3

    async def test_users_are_isolated(self, store):
        await store.board.post("someone-else", "health-agent", payload())
        assert await store.board.query(USER_ID) == []


class TestReadHelpers:
    """Convenience reads used for optional context"""

    async def test_recent_for_context_keeps_context_types(self, store):
        board = store.board
        await board.post(USER_ID, "health-agent", payload("obs"))
        await board.post(USER_ID, "training-coach", payload("week", entry_type=EntryType.WEEK_PREVIEW))

        entries = await board.recent_for_context(USER_ID)
        assert [e.content for e in entries] == ["obs"]

    async def test_alerts_and_requiring_response(self, store):
        board = store.board
        await board.post(USER_ID, "health-agent", payload("pain", entry_type=EntryType.ALERT))
        await board.post(USER_ID, "health-agent", payload("how did it feel?", requires_response=True))

        assert [e.content for e in await board.alerts(USER_ID)] == ["pain"]
        assert [e.content for e in await board.requiring_response(USER_ID)] == ["how did it feel?"]

    async def test_read_failure_degrades_to_empty(self):
        repo = Mock()
        repo.find = AsyncMock(side_effect=RuntimeError("database is locked"))
        board = BulletinBoard(repo)

        assert await board.recent_for_context(USER_ID) == []
        assert await board.alerts(USER_ID) == []

    async def test_query_failure_propagates(self):
        repo = Mock()
        repo.find = AsyncMock(side_effect=RuntimeError("database is locked"))
        with pytest.raises(RuntimeError):
            await BulletinBoard(repo).query(USER_ID)
