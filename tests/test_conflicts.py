from datetime import datetime

import pytest
from beanie import PydanticObjectId

from camrent.core.conflicts import (
    CONFIRM_ANYWAY_WARNING, CONFIRMED_CONFLICT_WARNING,
    build_resolution_options, can_submit, partition_conflicts,
)
from camrent.models.enum import RentalStatus, ResolutionAction
from camrent.models.rental import Rental

# Rental documents need an initialized collection
pytestmark = pytest.mark.usefixtures("db")


def _rental(status):
    return Rental(
        id=PydanticObjectId(),
        camera_id=PydanticObjectId(),
        start_date=datetime(2024, 3, 1),
        end_date=datetime(2024, 3, 3),
        rental_status=status,
        price_per_day=500,
    )


async def test_partition_counts_active_as_confirmed():
    conflicts = partition_conflicts([
        _rental(RentalStatus.CONFIRMED),
        _rental(RentalStatus.ACTIVE),
        _rental(RentalStatus.PENDING),
        _rental(RentalStatus.CANCELLED),
    ])

    assert len(conflicts.confirmed) == 2
    assert len(conflicts.pending) == 1
    assert conflicts.has_conflicts
    assert conflicts.has_confirmed


async def test_confirmed_and_pending_conflicts_with_free_unit():
    conflicts = partition_conflicts([_rental(RentalStatus.CONFIRMED), _rental(RentalStatus.PENDING)])

    options = build_resolution_options(conflicts, available_unit_ids=[str(PydanticObjectId())])

    assert options.default_action == ResolutionAction.TRANSFER_CURRENT
    assert options.offers(ResolutionAction.TRANSFER_CURRENT)
    assert options.offers(ResolutionAction.REJECT_CONFLICTS)
    assert not options.offers(ResolutionAction.REJECT_CURRENT)
    assert options.offers(ResolutionAction.CONFIRM_ANYWAY)
    assert options.confirm_anyway_warning == CONFIRMED_CONFLICT_WARNING


async def test_pending_conflict_without_free_unit():
    conflicts = partition_conflicts([_rental(RentalStatus.PENDING)])

    options = build_resolution_options(conflicts, available_unit_ids=[])

    assert options.default_action == ResolutionAction.REJECT_CURRENT
    assert not options.offers(ResolutionAction.TRANSFER_CURRENT)
    assert options.offers(ResolutionAction.REJECT_CURRENT)
    assert options.offers(ResolutionAction.REJECT_CONFLICTS)
    assert options.offers(ResolutionAction.CONFIRM_ANYWAY)
    assert options.confirm_anyway_warning == CONFIRM_ANYWAY_WARNING


async def test_only_confirmed_conflicts_hide_reject_conflicts():
    conflicts = partition_conflicts([_rental(RentalStatus.CONFIRMED)])

    options = build_resolution_options(conflicts, available_unit_ids=[])

    assert options.available_actions == [ResolutionAction.REJECT_CURRENT, ResolutionAction.CONFIRM_ANYWAY]


async def test_submission_guard():
    assert not can_submit(ResolutionAction.TRANSFER_CURRENT)
    assert can_submit(ResolutionAction.TRANSFER_CURRENT, selected_unit_id="abc")
    assert not can_submit(ResolutionAction.REJECT_CURRENT, rejection_reason="   ")
    assert can_submit(ResolutionAction.REJECT_CURRENT, rejection_reason="Unit under repair")
    assert not can_submit(ResolutionAction.REJECT_CONFLICTS)
    assert can_submit(ResolutionAction.REJECT_CONFLICTS, rejection_reason="Double booked")
    assert can_submit(ResolutionAction.CONFIRM_ANYWAY)
