"""
Hold manager: time-boxed soft reservations against the ledger.

Handles:
- Acquisition of every night in one all-or-nothing ledger call
- Confirmation (held -> booked in one all-or-nothing ledger call)
- Explicit release and the background expiry sweep
- Release/expiry events for listeners

Every status change is a compare-and-set in the hold repository, made before
the matching ledger change. Whoever wins the CAS owns the ledger change, so
confirm, release and the sweep racing on one hold move the counters once.

Each ledger call made for a hold carries an operation key (`hold:<id>:<action>`)
that the store records with the rows. When a call fails without an answer
the hold keeps a status that says so: REQUESTED for an acquisition, or ACTIVE
with a `<status>_pending` reason for a confirm or release. The store's record
of the key then decides how the hold is settled, by the next call on the hold
or by the expiry sweep.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence
from uuid import UUID, uuid4

from domain.allocation import BucketAdjustment
from domain.errors import (
    AllocationCancelled,
    AllocationError,
    CapacityExceeded,
    HoldExpired,
    HoldNotFound,
    InvalidAdjustment,
    InvalidHoldTransition,
    PartialCapacityFailure,
    StorageUnavailable,
)
from domain.hold import Hold, HoldLine, HoldStatus
from domain.time import DateRange, utc_now
from repositories.base import HoldRepository, LedgerStore

logger = logging.getLogger(__name__)

HoldListener = Callable[[Hold], None]

REASON_PARTIAL_FAILURE = "partial_capacity_failure"
REASON_CAPACITY = "capacity_exceeded"
REASON_CANCELLED = "cancelled"
REASON_EXPIRED = "expired"
REASON_RELEASED = "released"
REASON_ABANDONED = "acquisition_abandoned"

ACTION_ACQUIRE = "acquire"
ACTION_CONFIRM = "confirm"
ACTION_RELEASE = "release"

_PENDING_SUFFIX = "_pending"


def operation_key(hold_id: UUID, action: str) -> str:
    return f"hold:{hold_id}:{action}"


def pending_target(hold: Hold) -> Optional[HoldStatus]:
    """Status an ACTIVE hold was moving to when its ledger call went unanswered."""

    reason = hold.status_reason or ""
    if hold.status is HoldStatus.ACTIVE and reason.endswith(_PENDING_SUFFIX):
        return HoldStatus(reason[: -len(_PENDING_SUFFIX)])
    return None


class CancellationToken:
    """Lets a caller abandon an in-flight allocation before its hold is active."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AllocationCancelled("Allocation was cancelled by the caller")


class HoldManager:
    def __init__(
        self,
        ledger: LedgerStore,
        holds: HoldRepository,
        clock: Callable[[], datetime] = utc_now,
        hold_ttl: timedelta = timedelta(minutes=15),
        listeners: Optional[Sequence[HoldListener]] = None,
    ) -> None:
        if hold_ttl <= timedelta(0):
            raise ValueError("hold_ttl must be positive")
        self._ledger = ledger
        self._holds = holds
        self._clock = clock
        self._hold_ttl = hold_ttl
        self._listeners: List[HoldListener] = list(listeners or [])

    def add_listener(self, listener: HoldListener) -> None:
        self._listeners.append(listener)

    def get(self, org_id: UUID, hold_id: UUID) -> Hold:
        hold = self._holds.get(org_id, hold_id)
        if hold is None:
            raise HoldNotFound(hold_id)
        return hold

    # Acquisition ----------------------------------------------------------

    def acquire(
        self,
        org_id: UUID,
        unit_id: UUID,
        bucket_id: UUID,
        stay: DateRange,
        quantity: int,
        *,
        request_id: Optional[str] = None,
        requires_confirmation: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Hold:
        """
        Hold `quantity` bucket units on every night of the stay.

        The hold is recorded as REQUESTED first and becomes ACTIVE only once
        every night has been counted in `held`. The nights are taken in one
        all-or-nothing ledger call, so a failure leaves no night behind.

        Raises:
            CapacityExceeded: the first night was already full
            PartialCapacityFailure: a later night was full; no night was kept
            AllocationCancelled: the token was cancelled before the hold became active
            StorageUnavailable: the store did not answer; the hold stays
                REQUESTED until the expiry sweep settles it
            HoldExpired: the sweep reclaimed the hold while it was being acquired
        """

        now = self._clock()
        lines = tuple(HoldLine(bucket_id=bucket_id, night=night, quantity=quantity) for night in stay)
        hold = Hold(
            hold_id=uuid4(),
            org_id=org_id,
            unit_id=unit_id,
            bucket_id=bucket_id,
            quantity=quantity,
            lines=lines,
            status=HoldStatus.REQUESTED,
            created_at=now,
            expires_at=now + self._hold_ttl,
            updated_at=now,
            request_id=request_id,
            requires_confirmation=requires_confirmation,
        )
        self._holds.insert(hold)

        try:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            self._ledger.adjust_many(
                org_id,
                [line.acquire() for line in lines],
                operation_key(hold.hold_id, ACTION_ACQUIRE),
            )
        except CapacityExceeded as e:
            nights = [line.night for line in lines]
            earlier = nights.index(e.night) if e.night in nights else 0
            self._abandon(hold, REASON_PARTIAL_FAILURE if earlier else REASON_CAPACITY)
            if earlier:
                raise PartialCapacityFailure(
                    bucket_id=e.bucket_id,
                    night=e.night,
                    requested=e.requested,
                    available=e.available,
                    rolled_back=earlier,
                ) from e
            raise
        except AllocationCancelled:
            self._abandon(hold, REASON_CANCELLED)
            raise
        except InvalidAdjustment as e:
            self._abandon(hold, e.code.lower())
            raise
        except StorageUnavailable:
            logger.warning(
                "Hold %s left requested: its ledger change got no answer; the expiry sweep settles it",
                hold.hold_id,
            )
            raise

        if cancel_token is not None and cancel_token.cancelled:
            self._give_back_cancelled(hold)
            raise AllocationCancelled("Allocation was cancelled by the caller")

        active = hold.transition(HoldStatus.ACTIVE, self._clock())
        if not self._holds.compare_and_set(active, HoldStatus.REQUESTED):
            # Reclaimed by the sweep while the ledger call was in flight.
            self._ledger.adjust_many(
                org_id,
                [line.release() for line in lines],
                operation_key(hold.hold_id, ACTION_RELEASE),
            )
            raise HoldExpired(hold.hold_id)

        logger.info(
            "Hold %s active: bucket=%s nights=%d qty=%d expires=%s",
            active.hold_id,
            bucket_id,
            len(lines),
            quantity,
            active.expires_at.isoformat(),
        )
        return active

    def _abandon(self, hold: Hold, reason: str) -> None:
        """Record a hold whose nights were never taken as released."""

        logger.info("Hold %s not acquired (%s)", hold.hold_id, reason)
        released = hold.transition(HoldStatus.RELEASED, self._clock(), reason)
        self._holds.compare_and_set(released, HoldStatus.REQUESTED)

    def _give_back_cancelled(self, hold: Hold) -> None:
        try:
            self._ledger.adjust_many(
                hold.org_id,
                [line.release() for line in hold.lines],
                operation_key(hold.hold_id, ACTION_RELEASE),
            )
        except StorageUnavailable as e:
            logger.warning(
                "Hold %s cancelled but its units could not be returned yet (%s); the expiry sweep settles it",
                hold.hold_id,
                e,
            )
            return
        self._abandon(hold, REASON_CANCELLED)

    # Confirmation / release -----------------------------------------------

    def confirm(self, org_id: UUID, hold_id: UUID) -> Hold:
        """
        Turn an active hold into a booking.

        Confirming an already confirmed hold returns it unchanged. A hold
        past its expiry is released and HoldExpired is raised.
        """

        hold = self._settle(self.get(org_id, hold_id))
        if hold.status is HoldStatus.CONFIRMED:
            return hold
        if hold.status is HoldStatus.EXPIRED:
            raise HoldExpired(hold_id)

        now = self._clock()
        if hold.status is HoldStatus.ACTIVE and hold.is_expired(now):
            self._finish(hold, HoldStatus.EXPIRED, REASON_EXPIRED)
            raise HoldExpired(hold_id)

        confirmed = hold.transition(HoldStatus.CONFIRMED, now)
        if not self._holds.compare_and_set(confirmed, HoldStatus.ACTIVE):
            current = self.get(org_id, hold_id)
            if current.status is HoldStatus.CONFIRMED:
                return current
            if current.status is HoldStatus.EXPIRED:
                raise HoldExpired(hold_id)
            raise InvalidHoldTransition(
                f"Hold {hold_id} cannot move from {current.status.value} to confirmed"
            )

        self._apply(
            confirmed,
            hold,
            [line.confirm() for line in hold.lines],
            ACTION_CONFIRM,
        )
        logger.info("Hold %s confirmed: bucket=%s qty=%d", hold_id, hold.bucket_id, hold.quantity)
        return confirmed

    def release(self, org_id: UUID, hold_id: UUID, reason: str = REASON_RELEASED) -> Hold:
        """Release an active hold. Releasing a terminal hold is a no-op."""

        hold = self._settle(self.get(org_id, hold_id))
        if hold.is_terminal:
            return hold
        if hold.status is HoldStatus.REQUESTED:
            raise InvalidHoldTransition(f"Hold {hold_id} is still being acquired")

        finished = self._finish(hold, HoldStatus.RELEASED, reason)
        return finished if finished is not None else self.get(org_id, hold_id)

    def sweep_expired(self, now: Optional[datetime] = None, limit: int = 500) -> List[Hold]:
        """
        Expire every active or requested hold whose expiry has passed.

        Idempotent: a hold another worker already finished is skipped. A hold
        whose ledger change fails keeps its status and is picked up by the
        next run; the failure does not stop the other holds of this run.
        """

        now = now or self._clock()
        swept: List[Hold] = []
        deferred = 0
        failed = 0
        for hold in self._holds.list_expired(now, limit):
            try:
                if hold.status is HoldStatus.REQUESTED:
                    expired = self._reclaim(hold)
                else:
                    expired = self._expire(hold)
            except StorageUnavailable as e:
                deferred += 1
                logger.warning("Could not expire hold %s: %s", hold.hold_id, e)
                continue
            except AllocationError as e:
                failed += 1
                logger.error("Hold %s could not be expired and needs attention: %s", hold.hold_id, e)
                continue
            if expired is not None:
                swept.append(expired)

        if swept or deferred or failed:
            logger.info("Hold sweep: %d expired, %d deferred, %d failed", len(swept), deferred, failed)
        return swept

    # Internals ------------------------------------------------------------

    def _expire(self, hold: Hold) -> Optional[Hold]:
        settled = self._settle(hold)
        if settled is not hold:
            return settled if settled.status is HoldStatus.EXPIRED else None
        return self._finish(hold, HoldStatus.EXPIRED, REASON_EXPIRED)

    def _reclaim(self, hold: Hold) -> Optional[Hold]:
        """Expire a hold whose acquisition never finished and return whatever it took."""

        expired = hold.transition(HoldStatus.EXPIRED, self._clock(), REASON_ABANDONED)
        if not self._holds.compare_and_set(expired, HoldStatus.REQUESTED):
            return None

        try:
            if self._ledger.operation_applied(hold.org_id, operation_key(hold.hold_id, ACTION_ACQUIRE)):
                self._ledger.adjust_many(
                    hold.org_id,
                    [line.release() for line in hold.lines],
                    operation_key(hold.hold_id, ACTION_RELEASE),
                )
        except AllocationError:
            self._revert(expired, hold)
            raise

        logger.warning("Hold %s never became active; reclaimed by the sweep", hold.hold_id)
        self._notify(expired)
        return expired

    def _finish(self, hold: Hold, target: HoldStatus, reason: str) -> Optional[Hold]:
        """
        Move an ACTIVE hold to RELEASED/EXPIRED and give its units back.

        Returns None when another writer changed the hold first.
        """

        finished = hold.transition(target, self._clock(), reason)
        if not self._holds.compare_and_set(finished, HoldStatus.ACTIVE):
            return None

        self._apply(finished, hold, [line.release() for line in hold.lines], ACTION_RELEASE)
        logger.info(
            "Hold %s %s: bucket=%s qty=%d returned",
            hold.hold_id,
            target.value,
            hold.bucket_id,
            hold.quantity,
        )
        self._notify(finished)
        return finished

    def _apply(
        self,
        changed: Hold,
        previous: Hold,
        adjustments: Sequence[BucketAdjustment],
        action: str,
    ) -> None:
        """Make the ledger change for a status change already stored, or restore the previous status."""

        try:
            self._ledger.adjust_many(previous.org_id, adjustments, operation_key(previous.hold_id, action))
        except StorageUnavailable:
            self._revert(changed, previous, pending=changed.status)
            raise
        except AllocationError:
            self._revert(changed, previous)
            raise

    def _settle(self, hold: Hold) -> Hold:
        """Finish an ACTIVE hold whose pending ledger change turns out to have been applied."""

        target = pending_target(hold)
        if target is None:
            return hold
        action = ACTION_CONFIRM if target is HoldStatus.CONFIRMED else ACTION_RELEASE
        if not self._ledger.operation_applied(hold.org_id, operation_key(hold.hold_id, action)):
            return hold

        reason = None if target is HoldStatus.CONFIRMED else target.value
        settled = hold.transition(target, self._clock(), reason)
        if not self._holds.compare_and_set(settled, HoldStatus.ACTIVE):
            return self.get(hold.org_id, hold.hold_id)

        logger.info("Hold %s settled as %s", hold.hold_id, target.value)
        if target is not HoldStatus.CONFIRMED:
            self._notify(settled)
        return settled

    def _revert(self, changed: Hold, previous: Hold, pending: Optional[HoldStatus] = None) -> None:
        reason = f"{pending.value}{_PENDING_SUFFIX}" if pending is not None else previous.status_reason
        restored = replace(previous, updated_at=self._clock(), status_reason=reason)
        if not self._holds.compare_and_set(restored, changed.status):
            logger.error("Could not restore hold %s to %s", previous.hold_id, previous.status.value)

    def _notify(self, hold: Hold) -> None:
        for listener in self._listeners:
            try:
                listener(hold)
            except Exception:
                logger.exception("Hold listener failed for hold %s", hold.hold_id)


__all__ = ["CancellationToken", "HoldListener", "HoldManager", "operation_key", "pending_target"]
