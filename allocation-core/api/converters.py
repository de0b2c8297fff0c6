"""Domain object -> API model conversion shared by the routers."""

from __future__ import annotations

from domain.allocation import DailyAvailability
from domain.hold import Hold
from services.allocation_resolver import AllocationResult
from services.availability_service import AvailabilitySummary, CalendarDay
from services.pricing_service import StayQuote
from services.release_service import ReleaseWarning

from api.models import (
    AllocationResponse,
    AvailabilitySummaryResponse,
    CalendarDayResponse,
    DailyAvailabilityResponse,
    HoldResponse,
    NightLineResponse,
    QuoteResponse,
    ReleaseWarningResponse,
    SupplierAvailabilityResponse,
    TaxLineResponse,
)


def daily_availability_response(day: DailyAvailability) -> DailyAvailabilityResponse:
    return DailyAvailabilityResponse(
        night=day.night,
        total_quantity=day.total_quantity,
        booked=day.booked,
        held=day.held,
        available=day.available,
        bucket_count=day.bucket_count,
    )


def calendar_day_response(day: CalendarDay) -> CalendarDayResponse:
    return CalendarDayResponse(
        night=day.night,
        selling_price=day.selling_price,
        currency=day.currency,
        total_quantity=day.total_quantity,
        total_booked=day.total_booked,
        total_held=day.total_held,
        total_available=day.total_available,
        status=day.status,
        recommended_supplier=day.recommended_supplier,
        suppliers=[
            SupplierAvailabilityResponse(
                bucket_id=s.bucket_id,
                supplier_id=s.supplier_id,
                allocation_type=s.allocation_type.value,
                quantity=s.quantity,
                booked=s.booked,
                held=s.held,
                available=s.available,
                cost=s.cost,
                margin=s.margin,
                priority=s.priority,
                stop_sell=s.stop_sell,
                blackout=s.blackout,
            )
            for s in day.suppliers
        ],
    )


def summary_response(summary: AvailabilitySummary) -> AvailabilitySummaryResponse:
    return AvailabilitySummaryResponse(
        total_days=summary.total_days,
        available_days=summary.available_days,
        sold_out_days=summary.sold_out_days,
        low_inventory_days=summary.low_inventory_days,
        total_available=summary.total_available,
        total_booked=summary.total_booked,
    )


def hold_response(hold: Hold) -> HoldResponse:
    return HoldResponse(
        hold_id=hold.hold_id,
        org_id=hold.org_id,
        unit_id=hold.unit_id,
        bucket_id=hold.bucket_id,
        quantity=hold.quantity,
        nights=[line.night for line in hold.lines],
        status=hold.status.value,
        requires_confirmation=hold.requires_confirmation,
        request_id=hold.request_id,
        status_reason=hold.status_reason,
        created_at=hold.created_at,
        expires_at=hold.expires_at,
        updated_at=hold.updated_at,
    )


def quote_response(quote: StayQuote) -> QuoteResponse:
    return QuoteResponse(
        unit_id=quote.unit_id,
        start=quote.stay.start,
        end=quote.stay.end,
        quantity=quote.quantity,
        occupancy=quote.occupancy,
        currency=quote.currency,
        nights=[
            NightLineResponse(
                night=n.night,
                rate_plan_id=n.rate_plan_id,
                season_id=n.season_id,
                base_rate=n.base_rate,
                adjusted_rate=n.adjusted_rate,
                units=n.units,
                amount=n.amount,
            )
            for n in quote.nights
        ],
        taxes=[
            TaxLineResponse(
                rate_plan_id=t.rate_plan_id,
                name=t.name,
                amount_type=t.amount_type.value,
                calc_base=t.calc_base.value,
                inclusive=t.inclusive,
                amount=t.amount,
            )
            for t in quote.taxes
        ],
        base_total=quote.base_total,
        subtotal=quote.subtotal,
        taxes_total=quote.taxes_total,
        fees_total=quote.fees_total,
        total=quote.total,
        cost_total=quote.cost_total,
        margin=quote.margin,
        margin_percent=quote.margin_percent,
        created_at=quote.created_at,
        expires_at=quote.expires_at,
    )


def allocation_response(result: AllocationResult) -> AllocationResponse:
    candidate = result.candidate
    return AllocationResponse(
        hold=hold_response(result.hold),
        bucket_id=candidate.bucket_id,
        supplier_id=candidate.bucket.supplier_id,
        pool_id=candidate.pool.pool_id if candidate.pool is not None else None,
        source=candidate.source,
        units_held=candidate.units_required,
        attempts=result.attempts,
        requires_confirmation=result.requires_confirmation,
        quote=quote_response(result.quote) if result.quote is not None else None,
    )


def release_warning_response(warning: ReleaseWarning) -> ReleaseWarningResponse:
    return ReleaseWarningResponse(
        bucket_id=warning.bucket_id,
        unit_id=warning.unit_id,
        supplier_id=warning.supplier_id,
        contract_id=warning.contract_id,
        allocation_type=warning.allocation_type.value,
        valid_from=warning.valid_from,
        valid_to=warning.valid_to,
        release_days=warning.release_days,
        release_date=warning.release_date,
        days_until_release=warning.days_until_release,
        total_quantity=warning.total_quantity,
        booked=warning.booked,
        available_quantity=warning.available_quantity,
        unit_cost=warning.unit_cost,
        currency=warning.currency,
        potential_loss=warning.potential_loss,
        urgency=warning.urgency.value,
        recommendations=list(warning.recommendations),
    )
