"""
Pricing service for calculating stay quotes.

Prices a stay night by night from the preferred selling rate plan:

    nightly season rate
      -> occupancy adjustment (fixed / per_person / base_plus_pax)
      -> x units
      -> summed per plan, then taxes and fees

Taxes and fees are applied per plan: exclusive percentage taxes on the
subtotal, then fixed fees, unless the plan sets `fees_before_taxes` (then
fees first and percentages apply to subtotal + fees). Inclusive taxes are
reported but not added.

A night no preferred plan covers is an error, never a zero price.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING
from uuid import UUID

from domain.errors import NoPricingAvailable, RatePlanConflict
from domain.rate import AmountType, CalcBase, RatePlan, RateTaxFee
from domain.request import AllocationRequest
from domain.time import DateRange, utc_now
from repositories.base import RatePlanRepository

if TYPE_CHECKING:
    from services.allocation_resolver import Candidate

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class NightLine:
    """Price of one night for all requested units."""
    night: date
    rate_plan_id: UUID
    season_id: UUID
    base_rate: Decimal
    adjusted_rate: Decimal
    units: int
    amount: Decimal


@dataclass(frozen=True, slots=True)
class TaxLine:
    rate_plan_id: UUID
    name: str
    amount_type: AmountType
    calc_base: CalcBase
    inclusive: bool
    amount: Decimal


@dataclass(frozen=True, slots=True)
class StayQuote:
    """
    Complete stay quote with nightly breakdown.

    Includes:
    - base_total: season rates x units, before occupancy adjustment
    - subtotal: nightly amounts after occupancy adjustment
    - taxes/fees added on top (inclusive taxes only reported)
    - cost and margin when priced against a resolved candidate
    - Quote expiration (prevents stale price abuse)
    """
    unit_id: UUID
    stay: DateRange
    quantity: int
    occupancy: int
    currency: str
    nights: Tuple[NightLine, ...]
    taxes: Tuple[TaxLine, ...]
    base_total: Decimal
    subtotal: Decimal
    taxes_total: Decimal
    fees_total: Decimal
    total: Decimal
    cost_total: Optional[Decimal]
    margin: Optional[Decimal]
    margin_percent: Optional[Decimal]
    created_at: datetime
    expires_at: datetime  # Quote valid for limited time (e.g., 15 minutes)

    @property
    def rate_plan_ids(self) -> Tuple[UUID, ...]:
        seen: List[UUID] = []
        for line in self.nights:
            if line.rate_plan_id not in seen:
                seen.append(line.rate_plan_id)
        return tuple(seen)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if this quote has expired."""
        return (now or utc_now()) > self.expires_at


def calculate_margin(cost: Decimal, price: Decimal) -> Decimal:
    return price - cost


def calculate_margin_percentage(cost: Decimal, price: Decimal) -> Decimal:
    """Margin as a percentage of cost; 0 when there is no cost."""
    if cost == 0:
        return Decimal("0.00")
    return quantize_money((price - cost) / cost * HUNDRED)


def _apply_taxes_fees(
    plan: RatePlan,
    subtotal: Decimal,
    *,
    nights: int,
    occupancy: int,
    units: int,
) -> Tuple[List[TaxLine], Decimal, Decimal]:
    """
    Taxes and fees of one plan over its share of the stay.

    Returns:
        (lines, exclusive percentage taxes, exclusive fixed fees)
    """

    lines: List[TaxLine] = []

    def line(item: RateTaxFee, amount: Decimal) -> Decimal:
        amount = quantize_money(amount)
        lines.append(
            TaxLine(
                rate_plan_id=plan.rate_plan_id,
                name=item.name,
                amount_type=item.amount_type,
                calc_base=item.calc_base,
                inclusive=item.inclusive,
                amount=amount,
            )
        )
        return amount

    percentages = [t for t in plan.taxes_fees if t.amount_type is AmountType.PERCENTAGE and not t.inclusive]
    fixed = [t for t in plan.taxes_fees if t.amount_type is AmountType.FIXED and not t.inclusive]
    inclusive = [t for t in plan.taxes_fees if t.inclusive]

    def add_fees() -> Decimal:
        return sum(
            (line(f, f.fixed_amount(nights=nights, occupancy=occupancy, units=units)) for f in fixed),
            Decimal("0.00"),
        )

    def add_taxes(base: Decimal) -> Decimal:
        return sum((line(t, base * t.value / HUNDRED) for t in percentages), Decimal("0.00"))

    if plan.fees_before_taxes:
        fees_total = add_fees()
        taxes_total = add_taxes(subtotal + fees_total)
    else:
        taxes_total = add_taxes(subtotal)
        fees_total = add_fees()

    for item in inclusive:
        if item.amount_type is AmountType.PERCENTAGE:
            # Share of the subtotal that is already tax.
            line(item, subtotal - subtotal / (1 + item.value / HUNDRED))
        else:
            line(item, item.fixed_amount(nights=nights, occupancy=occupancy, units=units))

    return lines, taxes_total, fees_total


class PricingService:
    def __init__(
        self,
        rate_plans: RatePlanRepository,
        quote_validity_minutes: int = 15,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._rate_plans = rate_plans
        self._quote_validity = timedelta(minutes=quote_validity_minutes)
        self._clock = clock

    def select_rate_plan(
        self,
        org_id: UUID,
        unit_id: UUID,
        night: date,
        channel: Optional[str] = None,
        market: Optional[str] = None,
        currency: Optional[str] = None,
        plans: Optional[Sequence[RatePlan]] = None,
    ) -> RatePlan:
        """
        The one preferred selling plan active for the night, channel and market.

        Raises:
            NoPricingAvailable: no preferred plan covers the night
            RatePlanConflict: more than one does
        """

        if plans is None:
            plans = self._rate_plans.list_rate_plans(org_id, unit_id, DateRange.single(night))

        matching = [
            p
            for p in plans
            if p.is_selling_plan
            and p.preferred
            and p.in_scope(night, channel, market)
            and (currency is None or p.currency == currency)
        ]
        if not matching:
            raise NoPricingAvailable(unit_id, night, "no preferred rate plan covers this night")
        if len(matching) > 1:
            ids = ", ".join(sorted(str(p.rate_plan_id) for p in matching))
            raise RatePlanConflict(unit_id, night, f"{len(matching)} preferred rate plans are active: {ids}")
        return matching[0]

    def price_stay(
        self,
        request: AllocationRequest,
        candidate: Optional["Candidate"] = None,
    ) -> StayQuote:
        """
        Price every night of the request.

        Args:
            request: unit, stay, quantity, occupancy, channel, market, currency
            candidate: resolved bucket; when given the quote carries cost and margin

        Returns:
            StayQuote with nightly lines and totals quantized to cents

        Raises:
            NoPricingAvailable: some night has no plan, season or occupancy rule
        """

        stay = request.stay
        plans = self._rate_plans.list_rate_plans(request.org_id, request.unit_id, stay)
        units = request.quantity

        night_lines: List[NightLine] = []
        plans_used: Dict[UUID, RatePlan] = {}
        currency = request.currency

        for night in stay:
            plan = self.select_rate_plan(
                request.org_id,
                request.unit_id,
                night,
                request.channel,
                request.market,
                currency,
                plans=plans,
            )
            # Without a requested currency the first night's plan fixes it.
            currency = currency or plan.currency

            season = plan.season_for(night, stay.night_count)
            if season is None:
                raise NoPricingAvailable(
                    request.unit_id, night, f"rate plan {plan.rate_plan_id} has no season for this night"
                )

            adjusted = season.nightly_rate
            if plan.occupancies:
                rule = plan.occupancy_for(request.occupancy)
                if rule is None:
                    raise NoPricingAvailable(
                        request.unit_id,
                        night,
                        f"rate plan {plan.rate_plan_id} has no occupancy rule for {request.occupancy} guest(s)",
                    )
                adjusted = rule.adjust(season.nightly_rate, request.occupancy)

            plans_used.setdefault(plan.rate_plan_id, plan)
            night_lines.append(
                NightLine(
                    night=night,
                    rate_plan_id=plan.rate_plan_id,
                    season_id=season.season_id,
                    base_rate=season.nightly_rate,
                    adjusted_rate=adjusted,
                    units=units,
                    amount=adjusted * units,
                )
            )

        tax_lines: List[TaxLine] = []
        taxes_total = Decimal("0.00")
        fees_total = Decimal("0.00")
        for plan_id, plan in plans_used.items():
            plan_nights = [n for n in night_lines if n.rate_plan_id == plan_id]
            plan_subtotal = sum((n.amount for n in plan_nights), Decimal("0"))
            lines, plan_taxes, plan_fees = _apply_taxes_fees(
                plan,
                plan_subtotal,
                nights=len(plan_nights),
                occupancy=request.occupancy,
                units=units,
            )
            tax_lines.extend(lines)
            taxes_total += plan_taxes
            fees_total += plan_fees

        base_total = quantize_money(sum((n.base_rate * n.units for n in night_lines), Decimal("0")))
        subtotal = quantize_money(sum((n.amount for n in night_lines), Decimal("0")))
        total = quantize_money(subtotal + taxes_total + fees_total)

        cost_total: Optional[Decimal] = None
        margin: Optional[Decimal] = None
        margin_percent: Optional[Decimal] = None
        if candidate is not None:
            cost_total = quantize_money(candidate.cost_per_unit * stay.night_count * units)
            margin = calculate_margin(cost_total, total)
            margin_percent = calculate_margin_percentage(cost_total, total)

        now = self._clock()
        quote = StayQuote(
            unit_id=request.unit_id,
            stay=stay,
            quantity=units,
            occupancy=request.occupancy,
            currency=str(currency),
            nights=tuple(night_lines),
            taxes=tuple(tax_lines),
            base_total=base_total,
            subtotal=subtotal,
            taxes_total=quantize_money(taxes_total),
            fees_total=quantize_money(fees_total),
            total=total,
            cost_total=cost_total,
            margin=margin,
            margin_percent=margin_percent,
            created_at=now,
            expires_at=now + self._quote_validity,
        )
        logger.debug("Priced %s: total=%s %s", request.to_string(), total, quote.currency)
        return quote


__all__ = [
    "NightLine",
    "PricingService",
    "StayQuote",
    "TaxLine",
    "calculate_margin",
    "calculate_margin_percentage",
    "quantize_money",
]
