"""Canonical data models for freight invoice processing."""
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .numeric import coerce_amount


class ShipmentMode(str, Enum):
    """Shipment mode inferred from invoice content."""
    AIR = "air"
    OCEAN = "ocean"
    UNKNOWN = "unknown"


class ChargeCategory(str, Enum):
    """Charge taxonomy buckets."""
    SERVICE = "service"
    LOADING = "loading"
    TRANSPORTATION = "transportation"
    REIMBURSEMENT = "reimbursement"


class ComparisonStatus(str, Enum):
    """Outcome of comparing invoice actuals against quoted ceilings."""
    MATCHED = "matched"
    MISMATCHED = "mismatched"
    NO_QUOTATION_DATA = "no_quotation_data"
    INVOICE_TYPE_UNKNOWN = "invoice_type_unknown"
    NOT_COMPARABLE_CHARGES = "not_comparable_charges"


class SourceDocument(BaseModel):
    """An in-memory PDF handle passed through the extraction stages."""
    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., description="Original file name")
    content: bytes = Field(..., repr=False, description="Raw PDF bytes")
    page_count: int = Field(..., ge=0, description="Total pages in PDF")
    mime_type: str = Field(default="application/pdf")


class IdentificationFields(BaseModel):
    """Identification fields recovered by the field extraction stage."""
    model_config = ConfigDict(frozen=True)

    invoice_number: str = Field(default="", description="Invoice number")
    invoice_date: str = Field(default="", description="Invoice date, ISO when possible")
    shipment_reference: str = Field(default="", description="HAWB/HBL, else MAWB/MBL, else empty")
    terms_of_invoice: str = Field(default="", description="Payment or delivery terms")
    job_number: str = Field(default="", description="Forwarder job number")
    shipment_mode: ShipmentMode = Field(default=ShipmentMode.UNKNOWN, description="Advisory mode inference")


class ChargeBreakdown(BaseModel):
    """Itemized charge totals for one invoice page.

    Every amount is coerced on construction, so raw model values may be passed in.
    """
    model_config = ConfigDict(frozen=True)

    service_charge_actual: float = 0.0
    loading_unloading_charge_actual: float = 0.0
    transportation_charge_actual: float = 0.0
    own_charges: float = 0.0
    reimbursement_charges: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def coerce_amounts(cls, v: Any) -> float:
        return coerce_amount(v)

    @property
    def actuals_sum(self) -> float:
        return (
            self.service_charge_actual
            + self.loading_unloading_charge_actual
            + self.transportation_charge_actual
        )


class ExtractedRecord(BaseModel):
    """One invoice's merged, sanitized result."""
    model_config = ConfigDict(frozen=True)

    # Identification
    invoice_date: str = Field(default="")
    invoice_number: str = Field(default="")
    shipment_reference: str = Field(default="")
    terms_of_invoice: str = Field(default="")
    job_number: str = Field(default="")
    shipment_mode: ShipmentMode = Field(default=ShipmentMode.UNKNOWN)

    # Monetary, tax-inclusive, first page only
    service_charge_actual: float = Field(default=0.0, ge=0.0)
    loading_unloading_charge_actual: float = Field(default=0.0, ge=0.0)
    transportation_charge_actual: float = Field(default=0.0, ge=0.0)
    own_charges: float = Field(default=0.0, ge=0.0)
    reimbursement_charges: float = Field(default=0.0, ge=0.0)

    # Provenance
    source_filename: Optional[str] = Field(default=None)

    # Populated only against an active rate schedule
    comparison: Optional[ComparisonStatus] = Field(default=None)

    @field_validator(
        "service_charge_actual",
        "loading_unloading_charge_actual",
        "transportation_charge_actual",
        "own_charges",
        "reimbursement_charges",
        mode="before",
    )
    @classmethod
    def coerce_amounts(cls, v: Any) -> float:
        return coerce_amount(v)

    @computed_field
    @property
    def total_charges(self) -> float:
        """Own plus reimbursement charges."""
        return self.own_charges + self.reimbursement_charges

    @property
    def dedup_key(self) -> tuple[str, Optional[str]]:
        return (self.invoice_number, self.source_filename)

    def with_comparison(self, status: Optional[ComparisonStatus]) -> "ExtractedRecord":
        """Return a copy carrying the given comparison outcome."""
        return self.model_copy(update={"comparison": status})


class ChargeRate(BaseModel):
    """Quoted rate for one charge type.

    ``rate`` is None when the quotation gives no single fixed or minimum
    figure; that means "not comparable", never "free".
    """
    model_config = ConfigDict(frozen=True)

    rate: Optional[float] = Field(default=None, ge=0.0)
    description: str = Field(default="")


class ModeRates(BaseModel):
    """Quoted rates for one shipment mode."""
    model_config = ConfigDict(frozen=True)

    service: ChargeRate = Field(default_factory=ChargeRate)
    loading: ChargeRate = Field(default_factory=ChargeRate)
    transportation: ChargeRate = Field(default_factory=ChargeRate)


class RateSchedule(BaseModel):
    """One quotation's rate schedule."""
    model_config = ConfigDict(frozen=True)

    air: ModeRates = Field(default_factory=ModeRates)
    ocean: ModeRates = Field(default_factory=ModeRates)
    source_filename: Optional[str] = Field(default=None)

    def for_mode(self, mode: ShipmentMode) -> Optional[ModeRates]:
        if mode == ShipmentMode.AIR:
            return self.air
        if mode == ShipmentMode.OCEAN:
            return self.ocean
        return None


class DocumentFailure(BaseModel):
    """A per-document failure reported by a batch run."""
    filename: str = Field(..., description="Document that failed")
    stage: str = Field(..., description="Processing stage where the failure occurred")
    error_message: str = Field(..., description="Human-readable cause")


class BatchResult(BaseModel):
    """Per-document tally of a batch run."""
    records: List[ExtractedRecord] = Field(default_factory=list)
    failures: List[DocumentFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.records)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed
