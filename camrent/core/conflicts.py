# camrent/core/conflicts.py
"""
Booking-confirmation conflict resolution.

Conflicts are other rentals on the same unit whose dates overlap the rental
being confirmed. Confirmed (and active) ones block; pending ones can be
rejected. From the conflicts and the list of free units of the same model we
derive which resolutions an admin may choose, which one is preselected and
whether a chosen resolution carries the input it needs.
"""
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from camrent.models.camera import Camera
from camrent.models.enum import RentalStatus, ResolutionAction
from camrent.models.rental import Rental

CONFIRM_ANYWAY_WARNING = "Creates double bookings. Handle manually."
CONFIRMED_CONFLICT_WARNING = (
    "There are confirmed bookings for this unit. Confirming anyway double-books a "
    "confirmed customer. Transfer to another unit or handle manually."
)


class ConflictSet(BaseModel):
    confirmed: List[Rental] = Field(default_factory=list)
    pending: List[Rental] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.confirmed or self.pending)

    @property
    def has_confirmed(self) -> bool:
        return bool(self.confirmed)

    def pending_ids(self) -> List[str]:
        return [str(r.id) for r in self.pending]


class ResolutionOptions(BaseModel):
    available_actions: List[ResolutionAction]
    default_action: ResolutionAction
    confirm_anyway_warning: str

    def offers(self, action: ResolutionAction) -> bool:
        return action in self.available_actions


def partition_conflicts(rentals: Iterable[Rental]) -> ConflictSet:
    conflicts = ConflictSet()
    for rental in rentals:
        if rental.rental_status == RentalStatus.PENDING:
            conflicts.pending.append(rental)
        elif rental.rental_status in (RentalStatus.CONFIRMED, RentalStatus.ACTIVE):
            conflicts.confirmed.append(rental)
    return conflicts


def build_resolution_options(conflicts: ConflictSet, available_unit_ids: List[str]) -> ResolutionOptions:
    actions: List[ResolutionAction] = []
    if available_unit_ids:
        actions.append(ResolutionAction.TRANSFER_CURRENT)
    else:
        actions.append(ResolutionAction.REJECT_CURRENT)
    if conflicts.pending:
        actions.append(ResolutionAction.REJECT_CONFLICTS)
    actions.append(ResolutionAction.CONFIRM_ANYWAY)

    default = ResolutionAction.TRANSFER_CURRENT if available_unit_ids else ResolutionAction.REJECT_CURRENT
    warning = CONFIRMED_CONFLICT_WARNING if conflicts.has_confirmed else CONFIRM_ANYWAY_WARNING
    return ResolutionOptions(available_actions=actions, default_action=default, confirm_anyway_warning=warning)


def can_submit(
    action: ResolutionAction,
    selected_unit_id: Optional[str] = None,
    rejection_reason: Optional[str] = None,
) -> bool:
    """The selected action has the input it requires."""
    if action == ResolutionAction.TRANSFER_CURRENT:
        return bool(selected_unit_id)
    if action in (ResolutionAction.REJECT_CURRENT, ResolutionAction.REJECT_CONFLICTS):
        return bool(rejection_reason and rejection_reason.strip())
    return action == ResolutionAction.CONFIRM_ANYWAY


class ConflictResolution(BaseModel):
    """Admin's selected resolution for a conflicting confirmation."""
    action: ResolutionAction
    selected_unit_id: Optional[str] = None
    rejection_reason: Optional[str] = None


class ConflictReport(BaseModel):
    """What an admin sees when a confirmation runs into overlapping bookings."""
    rental: Rental.Response
    confirmed_conflicts: List[Rental.Response] = Field(default_factory=list)
    pending_conflicts: List[Rental.Response] = Field(default_factory=list)
    available_units: List[Camera.Response] = Field(default_factory=list)
    options: ResolutionOptions


class ConfirmationOutcome(BaseModel):
    confirmed: bool
    rental: Rental.Response
    conflict_report: Optional[ConflictReport] = None
    rejected_rental_ids: List[str] = Field(default_factory=list)
    message: Optional[str] = None
