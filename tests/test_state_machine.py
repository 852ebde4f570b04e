from decimal import Decimal

import pytest

from payflow.errors import InvalidTransition
from payflow.models import TransferRequest
from payflow.state_machine import (
    STATUS_DETAILS,
    TRANSITIONS,
    allowed_transitions,
    is_terminal,
    status_catalog,
)


def _request(**kw):
    data = {"amount": Decimal("100"), "recipient_phone": "+254712345678"}
    data.update(kw)
    return TransferRequest(**data)


def test_initiate_transfer_starts_pending(service, bus):
    tx = service.initiate_transfer(_request(sender_name="Jane Doe", sender_email="jane@example.com"))

    assert tx.status == "PENDING_GATEWAY"
    assert tx.currency == "KES"
    assert tx.updated_at == tx.created_at
    assert tx.mpesa_transaction_id is None
    assert service.read(tx.id) == tx
    assert [e.event_type for e in bus.events] == ["transaction.created"]


def test_ids_are_unique(service):
    ids = {service.initiate_transfer(_request()).id for _ in range(20)}
    assert len(ids) == 20


def test_happy_path_moves_forward(service, scheduler):
    tx = service.initiate_transfer(_request())
    seen = [tx.updated_at]
    for status in ("GATEWAY_SUCCESSFUL", "PROCESSING_SETTLEMENT", "COMPLETED"):
        scheduler.advance(1)
        tx = service.advance(tx.id, status)
        assert tx.status == status
        seen.append(tx.updated_at)

    assert seen == sorted(seen) and len(set(seen)) == len(seen)
    assert tx.mpesa_transaction_id.startswith("MPESA_")
    assert service.read(tx.id).status == "COMPLETED"


def test_updated_at_moves_even_without_clock_progress(service):
    tx = service.initiate_transfer(_request())
    moved = service.advance(tx.id, "GATEWAY_SUCCESSFUL")
    assert moved.updated_at > tx.updated_at
    assert moved.created_at == tx.created_at


def test_failed_settlement_has_no_reference(service):
    tx = service.initiate_transfer(_request())
    service.advance(tx.id, "GATEWAY_SUCCESSFUL")
    service.advance(tx.id, "PROCESSING_SETTLEMENT")
    tx = service.advance(tx.id, "FAILED_SETTLEMENT")
    assert tx.status == "FAILED_SETTLEMENT"
    assert tx.mpesa_transaction_id is None


def test_gateway_can_be_canceled(service):
    tx = service.initiate_transfer(_request())
    tx = service.advance(tx.id, "CANCELED_GATEWAY")
    assert tx.status == "CANCELED_GATEWAY"
    assert is_terminal(tx.status)


def test_advance_to_same_status_is_noop(service, bus):
    tx = service.initiate_transfer(_request())
    first = service.advance(tx.id, "GATEWAY_SUCCESSFUL")
    again = service.advance(tx.id, "GATEWAY_SUCCESSFUL")

    assert again == first
    assert len(bus.events) == 2


def test_advance_unknown_id_returns_none(service):
    assert service.advance("missing", "GATEWAY_SUCCESSFUL") is None
    assert service.read("missing") is None


@pytest.mark.parametrize(
    "path, target",
    [
        ([], "PROCESSING_SETTLEMENT"),
        ([], "COMPLETED"),
        (["GATEWAY_SUCCESSFUL"], "PENDING_GATEWAY"),
        (["GATEWAY_SUCCESSFUL"], "CANCELED_GATEWAY"),
        (["GATEWAY_SUCCESSFUL", "PROCESSING_SETTLEMENT"], "GATEWAY_SUCCESSFUL"),
    ],
)
def test_illegal_moves_are_rejected(service, path, target):
    tx = service.initiate_transfer(_request())
    for status in path:
        service.advance(tx.id, status)
    before = service.read(tx.id)

    with pytest.raises(InvalidTransition):
        service.advance(tx.id, target)
    assert service.read(tx.id) == before


@pytest.mark.parametrize("terminal", ["COMPLETED", "FAILED_SETTLEMENT"])
def test_terminal_transactions_are_frozen(service, terminal):
    tx = service.initiate_transfer(_request())
    for status in ("GATEWAY_SUCCESSFUL", "PROCESSING_SETTLEMENT", terminal):
        tx = service.advance(tx.id, status)

    for other in TRANSITIONS:
        if other == terminal:
            continue
        with pytest.raises(InvalidTransition):
            service.advance(tx.id, other)
    assert service.read(tx.id) == tx


def test_list_is_newest_first(service, scheduler):
    first = service.initiate_transfer(_request())
    scheduler.advance(1)
    second = service.initiate_transfer(_request())
    third = service.initiate_transfer(_request())

    assert [t.id for t in service.list()] == [third.id, second.id, first.id]


def test_status_events_carry_previous_status(service, bus):
    tx = service.initiate_transfer(_request())
    service.advance(tx.id, "GATEWAY_SUCCESSFUL")
    event = bus.events[-1]
    assert event.event_type == "transaction.status_changed"
    assert event.previous_status == "PENDING_GATEWAY"
    assert event.status == "GATEWAY_SUCCESSFUL"


def test_catalog_covers_every_status():
    catalog = status_catalog()
    assert {c.status for c in catalog} == set(TRANSITIONS) == set(STATUS_DETAILS)
    assert {c.status for c in catalog if c.terminal} == {
        "COMPLETED", "FAILED_SETTLEMENT", "CANCELED_GATEWAY",
    }
    assert allowed_transitions("PENDING_GATEWAY") == {"GATEWAY_SUCCESSFUL", "CANCELED_GATEWAY"}
