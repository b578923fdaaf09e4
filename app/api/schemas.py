"""API schemas for the catalog API.

Pydantic models for JSON request bodies and the tagged response envelope.
Product create and edit payloads travel as a JSON form field next to the
image files and are validated against the catalog payload models.
"""

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from app.catalog.payloads import ModifierType, OptionPayload, OptionType, OptionValuePayload


# ============================================================================
# Common Schemas
# ============================================================================


class TaggedResponse(BaseModel):
    """Envelope returned by every catalog endpoint.

    The HTTP status always equals ``statusCode``.
    """

    status: Literal["success", "error"] = Field(..., description="Outcome of the operation")
    statusCode: int = Field(..., description="Status code, mirrors the HTTP status")
    message: str = Field(..., description="Human-readable message")
    data: Any | None = Field(default=None, description="Operation result or error context")


# ============================================================================
# Product Schemas
# ============================================================================


class DuplicateRequest(BaseModel):
    """Overrides applied to a duplicated product."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, description="Title of the copy, generated if omitted")
    is_available_on_stock: bool | None = Field(default=None, description="Availability of the copy")
    mark_as_new: bool = Field(default=False)
    mark_as_featured: bool = Field(default=False)
    mark_as_top_seller: bool = Field(default=False)
    is_on_sale: bool = Field(default=False)
    is_special_offer: bool = Field(default=False)


# ============================================================================
# Custom Option Schemas
# ============================================================================


class OptionsRequest(BaseModel):
    """Options to create, or the full desired option list on replace."""

    options: list[OptionPayload] = Field(..., description="Custom options with their values")


class OptionPatchRequest(BaseModel):
    """Fields of one option to change; omitted fields keep their value."""

    model_config = ConfigDict(extra="forbid")

    option_name: str | None = None
    option_type: OptionType | None = None
    is_required: bool | None = None
    sort_order: int | None = None
    placeholder_text: str | None = None
    help_text: str | None = None
    validation_rules: dict[str, Any] | None = None
    is_active: bool | None = None
    affects_price: bool | None = None
    price_modifier_type: ModifierType | None = None
    base_price_modifier: Decimal | None = Field(default=None, allow_inf_nan=False)
    option_values: list[OptionValuePayload] | None = Field(
        default=None, description="Desired values, diffed against the stored ones"
    )


class SelectionSchema(BaseModel):
    """One selected option value."""

    option_id: str = Field(..., description="Custom option ID")
    value_id: str | None = Field(default=None, description="Selected value, omitted for free-form options")


class PriceQuoteRequest(BaseModel):
    """Selected option values to price."""

    selections: list[SelectionSchema] = Field(default_factory=list)
