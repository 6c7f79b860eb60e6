"""Capacity arbitration for participation requests.

Everything here is a pure function over plain values: the caller loads
the rows for one event, asks for a decision, and writes the returned
``Resolution`` in a single transaction (see ``request_service``).

A ``participant_limit`` of 0 means "unlimited".
"""
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from eventhub.exceptions import ConflictError
from eventhub.models.participation_request import ModerationDecision, RequestStatus


@dataclass(frozen=True)
class Resolution:
    """Outcome of one moderation batch, in the order decisions were made."""

    confirmed_ids: list[int] = field(default_factory=list)
    rejected_ids: list[int] = field(default_factory=list)
    confirmed_count: int = 0


def has_capacity(limit: int, confirmed: int) -> bool:
    return limit == 0 or confirmed < limit


def initial_status(limit: int, request_moderation: bool, confirmed: int) -> RequestStatus:
    """Status a new request is filed with, or ConflictError when the event is full."""
    if not has_capacity(limit, confirmed):
        raise ConflictError("The participant limit has been reached")
    if not request_moderation or limit == 0:
        return RequestStatus.CONFIRMED
    return RequestStatus.PENDING


def resolve_moderation(
    *,
    limit: int,
    confirmed: int,
    request_ids: Iterable[int],
    statuses: Mapping[int, RequestStatus],
    pending_ids: Iterable[int],
    decision: ModerationDecision,
) -> Resolution:
    """Decide a CONFIRM/REJECT batch for one event.

    ``statuses`` holds the current status of every requested id that belongs
    to the event; ids missing from it are foreign. ``pending_ids`` lists every
    PENDING request of the event and feeds the cascade.

    Listed requests are processed in ascending id order. Once the limit is
    reached the rest of the batch is rejected, and so is every other pending
    request of the event.
    """
    batch = sorted(set(request_ids))
    if any(statuses.get(request_id) != RequestStatus.PENDING for request_id in batch):
        raise ConflictError("Request must have status PENDING")

    if decision is ModerationDecision.REJECTED:
        return Resolution(rejected_ids=batch, confirmed_count=confirmed)

    if not has_capacity(limit, confirmed):
        raise ConflictError("The participant limit has been reached")

    confirmed_ids: list[int] = []
    rejected_ids: list[int] = []
    running = confirmed
    for request_id in batch:
        if has_capacity(limit, running):
            confirmed_ids.append(request_id)
            running += 1
        else:
            rejected_ids.append(request_id)

    if limit > 0 and running >= limit:
        in_batch = set(batch)
        rejected_ids.extend(sorted(pid for pid in pending_ids if pid not in in_batch))

    return Resolution(confirmed_ids=confirmed_ids, rejected_ids=rejected_ids, confirmed_count=running)
