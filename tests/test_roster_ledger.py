"""Tests for the roster ledger."""

import asyncio

import pytest

from gozen_boarding.domain.errors import AuthRequired, ValidationError
from gozen_boarding.domain.roster import PaxSource
from gozen_boarding.services.roster import RosterLedger
from tests.conftest import InMemoryPaxRepository, make_user


def test_roster_is_newest_first() -> None:
    repository = InMemoryPaxRepository()
    ledger = RosterLedger(repository)
    agent = make_user("uid-a")

    async def scenario() -> list[str]:
        await ledger.append_pax("s-1", "Ada Lovelace", "1A", agent)
        await ledger.append_pax("s-1", "Alan Turing", "2B", agent, PaxSource.SCAN)
        await ledger.append_pax("s-1", "Grace Hopper", "3C", agent)
        await ledger.append_pax("s-2", "Other Flight", "9Z", agent)
        records = await ledger.recent_pax("s-1", agent)
        return [record.name for record in records]

    names = asyncio.run(scenario())

    assert names == ["Grace Hopper", "Alan Turing", "Ada Lovelace"]


def test_append_cleans_fields_and_stamps_boarder() -> None:
    repository = InMemoryPaxRepository()
    ledger = RosterLedger(repository)

    pax_id = asyncio.run(
        ledger.append_pax("s-1", "  Ada Lovelace ", " 12a ", make_user("uid-b"), "Scan")
    )

    record = repository.records[0]
    assert record.id == pax_id
    assert record.name == "Ada Lovelace"
    assert record.seat == "12A"
    assert record.boarded_by == "uid-b"
    assert record.source is PaxSource.SCAN
    assert record.created_at is not None


@pytest.mark.parametrize(("name", "seat"), [("", "1A"), ("   ", "1A"), ("Ada", " ")])
def test_append_requires_name_and_seat(name: str, seat: str) -> None:
    repository = InMemoryPaxRepository()
    ledger = RosterLedger(repository)

    with pytest.raises(ValidationError):
        asyncio.run(ledger.append_pax("s-1", name, seat, make_user("uid-a")))
    assert repository.records == []


def test_append_rejects_unknown_source() -> None:
    repository = InMemoryPaxRepository()
    ledger = RosterLedger(repository)

    with pytest.raises(ValidationError):
        asyncio.run(ledger.append_pax("s-1", "Ada", "1A", make_user("uid-a"), "fax"))
    assert repository.records == []


def test_append_requires_signed_in_user() -> None:
    ledger = RosterLedger(InMemoryPaxRepository())

    with pytest.raises(AuthRequired):
        asyncio.run(ledger.append_pax("s-1", "Ada", "1A", None))


def test_roster_window_is_capped() -> None:
    ledger = RosterLedger(InMemoryPaxRepository())
    agent = make_user("uid-a")

    async def scenario() -> list[str]:
        for number in range(25):
            await ledger.append_pax("s-1", f"Pax {number}", f"{number}A", agent)
        return [record.name for record in await ledger.recent_pax("s-1", agent)]

    names = asyncio.run(scenario())

    assert len(names) == 20
    assert names[0] == "Pax 24"
    assert names[-1] == "Pax 5"


def test_watch_roster_delivers_each_append() -> None:
    repository = InMemoryPaxRepository()
    ledger = RosterLedger(repository)
    agent = make_user("uid-a")
    other_agent = make_user("uid-b")

    async def scenario() -> None:
        feed = ledger.watch_roster("s-1", agent)
        async with feed:
            assert await anext(feed) == []

            await ledger.append_pax("s-1", "Ada", "1A", other_agent)
            snapshot = await anext(feed)
            assert [record.seat for record in snapshot] == ["1A"]

            await ledger.append_pax("s-1", "Alan", "2B", agent, PaxSource.SCAN)
            snapshot = await anext(feed)
            assert [record.seat for record in snapshot] == ["2B", "1A"]
        assert repository.listeners["s-1"] == []
        assert feed.closed

    asyncio.run(scenario())


def test_closed_feeds_stop_being_tracked_by_the_user() -> None:
    repository = InMemoryPaxRepository()
    ledger = RosterLedger(repository)
    agent = make_user("uid-a")

    async def scenario() -> None:
        for _ in range(100):
            async with ledger.watch_roster("s-1", agent) as feed:
                await anext(feed)
        open_feed = ledger.watch_roster("s-1", agent)
        await open_feed.open()

        assert len(agent._closers) == 1
        await agent.close()
        assert open_feed.closed
        assert agent._closers == []

    asyncio.run(scenario())
