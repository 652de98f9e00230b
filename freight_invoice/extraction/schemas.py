"""Output shapes requested from the document-understanding model.

These models are deliberately lenient: the model is not guaranteed to honour
the requested types, so amounts accept numbers or strings and text fields
accept any scalar. Sanitizing happens downstream (see ``core.numeric``).
"""
from typing import Annotated, Any, List, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        # Multiple references collapse to the first one
        return _as_text(value[0]) if value else ""
    if isinstance(value, dict):
        return ""
    return str(value).strip()


def _as_line_items(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return value


Text = Annotated[str, BeforeValidator(_as_text)]
RawAmount = Optional[Union[float, str]]


class _ModelOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")


class FieldExtractionOutput(_ModelOutput):
    """Identification fields from the first page of an invoice."""
    invoice_number: Text = Field(default="", description="Main invoice number, e.g. CCLAIUP252600071")
    invoice_date: Text = Field(default="", description="Invoice date as YYYY-MM-DD if possible, otherwise as printed")
    house_waybill_number: Text = Field(default="", description="House Air Waybill (HAWB) or House Bill of Lading (HBL) number")
    master_waybill_number: Text = Field(default="", description="Master Air Waybill (MAWB) or Master Bill of Lading (MBL) number")
    waybill_terminology: Text = Field(default="", description="Label printed next to the waybill, e.g. HAWB, MAWB, HBL, MBL")
    terms_of_invoice: Text = Field(default="", description="Payment or delivery terms, e.g. CIF")
    job_number: Text = Field(default="", description="Job identifier, e.g. IMP/AIR/12771/04/25-26")
    shipment_mode: Text = Field(default="unknown", description="air, ocean or unknown")


class ChargeLineItem(_ModelOutput):
    """One row of the invoice charge table."""
    description: Text = Field(default="", description="Charge description exactly as printed")
    total: RawAmount = Field(default=None, description="Tax-inclusive Total column value for this row")


class ChargeClassificationOutput(_ModelOutput):
    """Itemized charges from the first page of an invoice."""
    line_items: Annotated[List[ChargeLineItem], BeforeValidator(_as_line_items)] = Field(
        default_factory=list,
        description="Every individual charge row; never subtotal or grand-total rows"
    )
    service_charge_actual: RawAmount = Field(default=None, description="Total for SERVICE CHARGES / AGENCY SERVICE CHARGES")
    loading_unloading_charge_actual: RawAmount = Field(default=None, description="Total for LOADING & UNLOADING CHARGES")
    transportation_charge_actual: RawAmount = Field(default=None, description="Total for TRANSPORTATION / CARTAGE CHARGES")
    own_charges: RawAmount = Field(default=None, description="Sum of the three categories above")
    reimbursement_charges: RawAmount = Field(default=None, description="Sum of every other charge row")


class QuotationRatesOutput(_ModelOutput):
    """Rates for air and ocean clearance from a quotation."""
    air_service_charge_rate: RawAmount = Field(default=None, description="Single fixed or minimum figure, else omit")
    air_service_charge_description: Text = Field(default="", description="Full text as quoted")
    air_loading_charge_rate: RawAmount = Field(default=None, description="Single fixed or minimum figure, else omit")
    air_loading_charge_description: Text = Field(default="", description="Full text as quoted")
    air_transportation_charge_rate: RawAmount = Field(default=None, description="Single fixed figure, else omit")
    air_transportation_charge_description: Text = Field(default="", description="Full text as quoted, all tiers")
    ocean_service_charge_rate: RawAmount = Field(default=None, description="Single fixed or minimum figure, else omit")
    ocean_service_charge_description: Text = Field(default="", description="Full text as quoted")
    ocean_loading_charge_rate: RawAmount = Field(default=None, description="Single fixed or minimum figure, else omit")
    ocean_loading_charge_description: Text = Field(default="", description="Full text as quoted")
    ocean_transportation_charge_rate: RawAmount = Field(default=None, description="Single fixed figure, else omit")
    ocean_transportation_charge_description: Text = Field(default="", description="Full text as quoted, all tiers")
