"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


# ============================================================================
# Availability Models
# ============================================================================

class DailyAvailabilityResponse(BaseModel):
    """Aggregate counters of one unit for one night. `None` means unbounded."""
    night: date
    total_quantity: Optional[int] = None
    booked: int
    held: int
    available: Optional[int] = None
    bucket_count: int


class AvailabilityResponse(BaseModel):
    unit_id: UUID
    start: date
    end: date
    days: List[DailyAvailabilityResponse]

    class Config:
        json_schema_extra = {
            "example": {
                "unit_id": "123e4567-e89b-12d3-a456-426614174000",
                "start": "2026-07-01",
                "end": "2026-07-03",
                "days": [
                    {"night": "2026-07-01", "total_quantity": 10, "booked": 8, "held": 0, "available": 2, "bucket_count": 1},
                    {"night": "2026-07-02", "total_quantity": 10, "booked": 6, "held": 1, "available": 3, "bucket_count": 1}
                ]
            }
        }


class SupplierAvailabilityResponse(BaseModel):
    bucket_id: UUID
    supplier_id: UUID
    allocation_type: str
    quantity: Optional[int] = None
    booked: int
    held: int
    available: Optional[int] = None
    cost: Decimal
    margin: Optional[Decimal] = None
    priority: int
    stop_sell: bool
    blackout: bool


class CalendarDayResponse(BaseModel):
    night: date
    selling_price: Optional[Decimal] = None
    currency: Optional[str] = None
    total_quantity: Optional[int] = None
    total_booked: int
    total_held: int
    total_available: Optional[int] = None
    status: str  # available, low_inventory, sold_out, stop_sell, blackout
    recommended_supplier: Optional[UUID] = None
    suppliers: List[SupplierAvailabilityResponse]


class AvailabilitySummaryResponse(BaseModel):
    total_days: int
    available_days: int
    sold_out_days: int
    low_inventory_days: int
    total_available: Optional[int] = None
    total_booked: int


class CalendarResponse(BaseModel):
    unit_id: UUID
    start: date
    end: date
    days: List[CalendarDayResponse]
    summary: AvailabilitySummaryResponse


# ============================================================================
# Allocation / Quote Models
# ============================================================================

class StayRequest(BaseModel):
    """Unit, stay and party shared by allocation and quote requests."""
    org_id: UUID = Field(..., description="Organization that owns the inventory")
    unit_id: UUID = Field(..., description="Inventory unit (product variant) to allocate")
    start: date = Field(..., description="First night (check-in)")
    end: date = Field(..., description="Check-out date (not a night)")
    quantity: int = Field(1, ge=1, description="Units requested")
    occupancy: int = Field(1, ge=1, description="Guests per unit")
    channel: Optional[str] = None
    market: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class AllocationRequestBody(StayRequest):
    request_id: Optional[str] = Field(None, max_length=128, description="Caller reference, stored on the hold")

    class Config:
        json_schema_extra = {
            "example": {
                "org_id": "123e4567-e89b-12d3-a456-426614174010",
                "unit_id": "123e4567-e89b-12d3-a456-426614174000",
                "start": "2026-07-01",
                "end": "2026-07-06",
                "quantity": 2,
                "occupancy": 2,
                "channel": "b2c",
                "market": "UK",
                "currency": "EUR",
                "request_id": "booking-42"
            }
        }


class QuoteRequest(StayRequest):
    """Request to price a stay without holding capacity."""


class NightLineResponse(BaseModel):
    night: date
    rate_plan_id: UUID
    season_id: UUID
    base_rate: Decimal
    adjusted_rate: Decimal
    units: int
    amount: Decimal


class TaxLineResponse(BaseModel):
    rate_plan_id: UUID
    name: str
    amount_type: str
    calc_base: str
    inclusive: bool
    amount: Decimal


class QuoteResponse(BaseModel):
    """Priced stay with nightly breakdown."""
    unit_id: UUID
    start: date
    end: date
    quantity: int
    occupancy: int
    currency: str
    nights: List[NightLineResponse]
    taxes: List[TaxLineResponse]
    base_total: Decimal
    subtotal: Decimal
    taxes_total: Decimal
    fees_total: Decimal
    total: Decimal
    cost_total: Optional[Decimal] = None
    margin: Optional[Decimal] = None
    margin_percent: Optional[Decimal] = None
    created_at: datetime
    expires_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "unit_id": "123e4567-e89b-12d3-a456-426614174000",
                "start": "2026-07-01",
                "end": "2026-07-06",
                "quantity": 1,
                "occupancy": 2,
                "currency": "EUR",
                "nights": [],
                "taxes": [],
                "base_total": "540.00",
                "subtotal": "540.00",
                "taxes_total": "54.00",
                "fees_total": "10.00",
                "total": "604.00",
                "created_at": "2026-06-01T12:00:00Z",
                "expires_at": "2026-06-01T12:15:00Z"
            }
        }


# ============================================================================
# Hold Models
# ============================================================================

class HoldResponse(BaseModel):
    hold_id: UUID
    org_id: UUID
    unit_id: UUID
    bucket_id: UUID
    quantity: int
    nights: List[date]
    status: str
    requires_confirmation: bool
    request_id: Optional[str] = None
    status_reason: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    updated_at: datetime


class AllocationResponse(BaseModel):
    """A held (and priced) allocation."""
    hold: HoldResponse
    bucket_id: UUID
    supplier_id: UUID
    pool_id: Optional[UUID] = None
    source: str  # "direct" or "pool"
    units_held: int
    attempts: int
    requires_confirmation: bool
    quote: Optional[QuoteResponse] = None


# ============================================================================
# Release Models
# ============================================================================

class ReleaseWarningResponse(BaseModel):
    bucket_id: UUID
    unit_id: UUID
    supplier_id: UUID
    contract_id: Optional[UUID] = None
    allocation_type: str
    valid_from: date
    valid_to: date
    release_days: int
    release_date: date
    days_until_release: int
    total_quantity: int
    booked: int
    available_quantity: int
    unit_cost: Decimal
    currency: str
    potential_loss: Decimal
    urgency: str
    recommendations: List[str]


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "NO_AVAILABILITY",
                "detail": "No availability for unit 123e4567-e89b-12d3-a456-426614174000 (3 candidate(s) tried)",
                "status_code": 409
            }
        }
