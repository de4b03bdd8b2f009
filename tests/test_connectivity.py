"""Tests for one-hop entity connectivity and the timelines built on it."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from presence_engine.models import Entity, EntityLink
from presence_engine.services.connectivity import EntityConnectivityResolver
from presence_engine.services.events import EventService
from presence_engine.services.presences import PresenceMember, PresenceService
from presence_engine.services.timeline import TimelineService

MakeEntity = Callable[..., Entity]
MakeEntityLink = Callable[..., EntityLink]
Persist = Callable[..., Awaitable[None]]


class TestConnectedEntityIds:
    """Tests for EntityConnectivityResolver.connected_entity_ids."""

    async def test_one_hop_both_directions(
        self,
        db_session: AsyncSession,
        persist: Persist,
        make_entity: MakeEntity,
        make_entity_link: MakeEntityLink,
    ) -> None:
        """A→B and C→A: A sees B and C; B sees A but not C."""
        a, b, c = make_entity(), make_entity(), make_entity()
        await persist(
            a,
            b,
            c,
            make_entity_link(a.entity_id, b.entity_id, "owns"),
            make_entity_link(c.entity_id, a.entity_id, "associated-with"),
        )
        resolver = EntityConnectivityResolver(db_session)

        assert await resolver.connected_entity_ids(a.entity_id) == {
            a.entity_id,
            b.entity_id,
            c.entity_id,
        }
        assert await resolver.connected_entity_ids(b.entity_id) == {a.entity_id, b.entity_id}

    async def test_isolated_entity_is_its_own_neighbourhood(
        self, db_session: AsyncSession
    ) -> None:
        entity_id = uuid4()

        assert await EntityConnectivityResolver(db_session).connected_entity_ids(entity_id) == {
            entity_id
        }

    async def test_direct_links_report_direction(
        self,
        db_session: AsyncSession,
        persist: Persist,
        make_entity: MakeEntity,
        make_entity_link: MakeEntityLink,
    ) -> None:
        a, b, c = make_entity(), make_entity(), make_entity()
        await persist(
            a,
            b,
            c,
            make_entity_link(a.entity_id, b.entity_id, "owns"),
            make_entity_link(c.entity_id, a.entity_id, "drives"),
        )

        links = await EntityConnectivityResolver(db_session).get_direct_links(a.entity_id)

        by_other = {link.other_entity_id: link for link in links}
        assert by_other[b.entity_id].outgoing is True
        assert by_other[b.entity_id].relation_type == "owns"
        assert by_other[c.entity_id].outgoing is False


class TestTimeline:
    """Tests for TimelineService widening by connected entities."""

    async def test_presences_and_events_include_neighbours(
        self,
        db_session: AsyncSession,
        persist: Persist,
        make_entity: MakeEntity,
        make_entity_link: MakeEntityLink,
    ) -> None:
        owner = make_entity()
        car = make_entity(entity_type="vehicle")
        stranger = make_entity()
        await persist(
            owner, car, stranger, make_entity_link(owner.entity_id, car.entity_id, "owns")
        )
        presences = PresenceService(db_session)
        morning = datetime(2024, 2, 1, 8, tzinfo=UTC)
        evening = datetime(2024, 2, 1, 18, tzinfo=UTC)
        car_seen = await presences.create_presence(morning, [PresenceMember(car.entity_id)])
        owner_seen = await presences.create_presence(evening, [PresenceMember(owner.entity_id)])
        await presences.create_presence(evening, [PresenceMember(stranger.entity_id)])
        event = await EventService(db_session).create_event(
            morning, "Parking ticket", entity_ids=[car.entity_id]
        )

        timeline = TimelineService(db_session)
        found = await timeline.presences_for_entity(owner.entity_id)
        events = await timeline.events_for_entity(owner.entity_id)

        assert [p.presence_id for p in found] == [owner_seen.presence_id, car_seen.presence_id]
        assert [e.event_id for e in events] == [event.event_id]
