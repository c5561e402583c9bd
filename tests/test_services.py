"""Unit tests for the async record services."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List

import pytest

from mini_crm.config import LatencyConfig, ServiceConfig
from mini_crm.errors import CrmError, NotFoundError
from mini_crm.models import Deal, StageDirection
from mini_crm.services import DealService
from mini_crm.views import adjacent_stage
from mini_crm.workspace import CrmServices

NEW_RECORDS: Dict[str, Dict[str, Any]] = {
    "contacts": {"name": "Alice Smith", "email": "alice@acme.example", "company": "Acme", "tags": ["vip"]},
    "deals": {"title": "Acme Renewal", "value": 12_000, "stage": "qualified", "probability": 40},
    "activities": {"type": "call", "subject": "Discovery call", "contactId": "1", "duration": 15},
}

UPDATES: Dict[str, Dict[str, Any]] = {
    "contacts": {"company": "Acme Holdings"},
    "deals": {"notes": "Legal review pending."},
    "activities": {"subject": "Rescheduled discovery call"},
}

KINDS = sorted(NEW_RECORDS)


# ------------------------------------------------------------------------------
# Properties shared by every record kind
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", KINDS)
async def test_create_then_get_by_id_returns_equal_record(services: CrmServices, kind: str) -> None:
    service = getattr(services, kind)
    created = await service.create(NEW_RECORDS[kind])

    fetched = await service.get_by_id(created.id)

    assert fetched == created
    assert fetched is not created


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", KINDS)
async def test_delete_then_get_by_id_raises_not_found(services: CrmServices, kind: str) -> None:
    service = getattr(services, kind)
    created = await service.create(NEW_RECORDS[kind])

    assert await service.delete(created.id) is True
    with pytest.raises(NotFoundError):
        await service.get_by_id(created.id)


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", KINDS)
async def test_update_changes_only_supplied_field(services: CrmServices, kind: str) -> None:
    service = getattr(services, kind)
    before = await service.get_by_id("1")
    (field_name, value), = UPDATES[kind].items()

    await service.update("1", UPDATES[kind])
    after = await service.get_by_id("1")

    assert getattr(after, field_name) == value
    untouched = {field_name, "last_activity"}
    assert after.model_dump(exclude=untouched) == before.model_dump(exclude=untouched)


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", KINDS)
async def test_get_all_length_tracks_mutations(services: CrmServices, kind: str) -> None:
    service = getattr(services, kind)
    initial = len(await service.get_all())

    created = await service.create(NEW_RECORDS[kind])
    assert len(await service.get_all()) == initial + 1

    await service.update(created.id, UPDATES[kind])
    assert len(await service.get_all()) == initial + 1

    await service.delete(created.id)
    assert len(await service.get_all()) == initial


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", KINDS)
async def test_create_inserts_at_head_and_update_keeps_position(services: CrmServices, kind: str) -> None:
    service = getattr(services, kind)
    created = await service.create(NEW_RECORDS[kind])
    order_before = [record.id for record in await service.get_all()]
    assert order_before[0] == created.id

    await service.update(order_before[2], UPDATES[kind])

    assert [record.id for record in await service.get_all()] == order_before


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", KINDS)
async def test_missing_ids_raise_not_found(services: CrmServices, kind: str) -> None:
    service = getattr(services, kind)

    with pytest.raises(NotFoundError) as exc:
        await service.get_by_id("missing")
    assert str(exc.value) == f"{service.entity_name} not found with ID 'missing'."
    assert exc.value.record_id == "missing"

    with pytest.raises(NotFoundError):
        await service.update("missing", UPDATES[kind])
    with pytest.raises(CrmError):
        await service.delete("missing")


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", KINDS)
async def test_new_ids_are_unique(empty_services: CrmServices, kind: str) -> None:
    service = getattr(empty_services, kind)
    ids = {(await service.create(NEW_RECORDS[kind])).id for _ in range(25)}
    assert len(ids) == 25


# ------------------------------------------------------------------------------
# Entity-specific stamping
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_contact_create_stamps_both_timestamps(services: CrmServices, clock) -> None:
    contact = await services.contacts.create(name="Bob Lee", created_at="1999-01-01T00:00:00Z")

    assert contact.created_at == clock.current
    assert contact.last_activity == clock.current


@pytest.mark.asyncio
async def test_contact_update_always_advances_last_activity(services: CrmServices) -> None:
    before = await services.contacts.get_by_id("2")

    updated = await services.contacts.update(
        "2", {"lastActivity": "2000-01-01T00:00:00Z", "position": "CEO"}
    )

    assert updated.last_activity > before.last_activity
    assert updated.created_at == before.created_at
    assert updated.position == "CEO"


@pytest.mark.asyncio
async def test_activity_date_defaults_to_now(services: CrmServices, clock) -> None:
    undated = await services.activities.create(type="note", subject="Quick note")
    blank = await services.activities.create(type="note", subject="Another", date="")
    dated = await services.activities.create(type="meeting", subject="Planned", date="2024-05-02T10:30")

    assert undated.date < blank.date <= clock.current
    assert dated.date == datetime(2024, 5, 2, 10, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_activity_update_with_blank_date_keeps_existing_date(services: CrmServices) -> None:
    before = await services.activities.get_by_id("1")

    cleared = await services.activities.update("1", {"date": "", "duration": 20})
    nulled = await services.activities.update("1", date=None)

    assert cleared.date == before.date
    assert cleared.duration == 20
    assert nulled.date == before.date


@pytest.mark.asyncio
async def test_string_fields_are_trimmed_on_update(services: CrmServices) -> None:
    await services.contacts.update("1", {"name": " Bob ", "company": "  Acme  "})

    stored = await services.contacts.get_by_id("1")
    assert stored.name == "Bob"
    assert stored.company == "Acme"


@pytest.mark.asyncio
async def test_deal_create_accepts_camel_case_payload(services: CrmServices, clock) -> None:
    deal = await services.deals.create(
        {"title": "Zeta Upgrade", "value": "4500.50", "contactId": "3", "expectedClose": "2024-05-01"}
    )

    assert deal.contact_id == "3"
    assert deal.expected_close == date(2024, 5, 1)
    assert deal.value == pytest.approx(4500.5)
    assert deal.created_at == clock.current


@pytest.mark.asyncio
async def test_update_never_changes_id(services: CrmServices) -> None:
    updated = await services.deals.update("2", {"id": "hijacked", "probability": 55})

    assert updated.id == "2"
    assert "hijacked" not in services.deals.store


@pytest.mark.asyncio
async def test_update_accepts_model_partial(services: CrmServices) -> None:
    partial = Deal.model_validate({"stage": "won", "created_at": "2024-01-01T00:00:00Z"})

    updated = await services.deals.update("3", partial)

    # Only fields explicitly set on the model are merged.
    assert updated.stage == "won"
    assert updated.title == "Global Retail POS Integration"
    assert updated.value == 80000


@pytest.mark.asyncio
async def test_returned_records_are_copies(services: CrmServices) -> None:
    created = await services.deals.create(title="Copy check")

    assert services.deals.store.at(0) == created
    assert services.deals.store.at(0) is not created


@pytest.mark.asyncio
async def test_unknown_fields_are_ignored(services: CrmServices) -> None:
    deal = await services.deals.create(title="Extra", colour="blue")
    assert not hasattr(deal, "colour")


@pytest.mark.asyncio
async def test_big_sale_scenario(services: CrmServices) -> None:
    deals = services.deals
    created = await deals.create({"title": "Big Sale", "value": 5000, "stage": "lead", "probability": 20})

    listing = await deals.get_all()
    assert listing[0] == created

    current = created
    for _ in range(2):
        target = adjacent_stage(current.stage, StageDirection.FORWARD)
        current = await deals.update(current.id, {"stage": target})
    assert current.stage == "proposal"

    await deals.delete(created.id)
    assert created.id not in [deal.id for deal in await deals.get_all()]


# ------------------------------------------------------------------------------
# Latency simulation
# ------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_each_call_waits_configured_latency(monkeypatch: pytest.MonkeyPatch) -> None:
    waits: List[float] = []

    async def fake_sleep(seconds: float) -> None:
        waits.append(seconds)

    monkeypatch.setattr("mini_crm.services.asyncio.sleep", fake_sleep)
    service = DealService(config=ServiceConfig(latency=LatencyConfig()))

    created = await service.create(title="Timed")
    await service.get_all()
    await service.get_by_id(created.id)
    await service.update(created.id, {"value": 10})
    await service.delete(created.id)

    assert waits == [0.4, 0.3, 0.2, 0.3, 0.2]


@pytest.mark.asyncio
async def test_zero_latency_skips_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fail_sleep(seconds: float) -> None:
        raise AssertionError("sleep should not be called")

    monkeypatch.setattr("mini_crm.services.asyncio.sleep", fail_sleep)
    service = DealService(config=ServiceConfig.instant())

    await service.create(title="Instant")
    assert len(await service.get_all()) == 1
