"""Validated payloads for catalog writes.

Product, service, category link, image and custom option payloads are
parsed with pydantic before anything is written. ``validate_payload`` is
the one place where pydantic errors become catalog ``ValidationError``s.
"""

from decimal import Decimal
from typing import Annotated, Any, ClassVar, Literal, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, InstanceOf, StringConstraints, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.json_schema import SkipJsonSchema

from app.catalog.identifiers import is_valid_ean13
from app.domain.exceptions import ValidationError
from app.domain.value_objects import ImageUpload

WeightUnit = Literal["kg", "g", "lbs", "oz"]
MeasuresUnit = Literal["cm", "mm", "inches", "feet"]
UnitType = Literal["pcs", "pack", "box"]
ServiceType = Literal["service", "support", "installation", "transport", "setup", "training", "other"]
OptionType = Literal["text", "textarea", "select", "radio", "checkbox", "file", "date", "number"]
ModifierType = Literal["fixed", "percentage"]

RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Amount = Annotated[Decimal, Field(ge=0, allow_inf_nan=False)]
Percentage = Annotated[Decimal, Field(ge=0, le=100, allow_inf_nan=False)]
Modifier = Annotated[Decimal, Field(allow_inf_nan=False)]
Count = Annotated[int, Field(ge=0)]
Score = Annotated[float, Field(ge=0, allow_inf_nan=False)]

REQUIRED_PRODUCT_FIELDS = (
    "title",
    "description",
    "weight",
    "weight_unit",
    "measures_unit",
    "unit_type",
    "purchase_price_nett",
    "regular_price_nett",
    "tax_id",
)


class CatalogPayload(BaseModel):
    """Base for catalog payloads.

    Blank strings count as absent. Absent and ``null`` values fall back to
    the field default unless ``keep_nulls`` is set (partial edits, where
    ``null`` clears a field).
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    keep_nulls: ClassVar[bool] = False

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = {k: None if isinstance(v, str) and not v.strip() else v for k, v in data.items()}
        if cls.keep_nulls:
            return cleaned
        return {k: v for k, v in cleaned.items() if v is not None}


# ============================================================================
# Product Children
# ============================================================================


class CategoryLink(CatalogPayload):
    """Category link; bare ids are accepted for ``category_id``."""

    category_id: UUID
    is_primary: bool = False

    @model_validator(mode="before")
    @classmethod
    def accept_bare_id(cls, data: Any) -> Any:
        if isinstance(data, (str, UUID)):
            return {"category_id": data}
        if isinstance(data, dict) and "category_id" not in data and "id" in data:
            return {**data, "category_id": data["id"]}
        return data


class ServicePayload(CatalogPayload):
    """Add-on service sold with a product."""

    title: RequiredText
    description: str | None = None
    full_description: str | None = None
    price: Amount = Decimal("0")
    thumbnail: str | None = None
    service_type: ServiceType = "service"
    is_required: bool = False
    is_active: bool = True
    standalone: bool = False
    company_id: UUID | None = None


class HostedImage(CatalogPayload):
    """Metadata of an already hosted image; bare URLs are accepted."""

    url: RequiredText
    id: str | None = None
    alt_text: str | None = None
    order: Count | None = None
    is_main: bool = False
    file_name: str | None = None
    size_bytes: Count | None = None
    created_at: str | None = None

    @model_validator(mode="before")
    @classmethod
    def accept_bare_url(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"url": data}
        return data


class CustomDetailPayload(CatalogPayload):
    """One specification entry; missing parts are derived later."""

    key: str | None = None
    label: str | None = None
    value: str | None = None


# ============================================================================
# Custom Options
# ============================================================================


def natural_key(text: str | None) -> str:
    """Normalize a name for matching: trimmed, single-spaced, casefolded."""
    return " ".join((text or "").split()).casefold()


OPTION_VALUE_COLUMNS = frozenset(
    {
        "option_value",
        "display_name",
        "sort_order",
        "is_default",
        "is_active",
        "price_modifier",
        "price_modifier_type",
        "image_alt_text",
        "additional_data",
        "stock_quantity",
        "is_in_stock",
    }
)


class OptionValuePayload(CatalogPayload):
    """One selectable value of a custom option."""

    option_value: RequiredText
    display_name: str | None = None
    sort_order: int | None = None
    is_default: bool = False
    is_active: bool = True
    price_modifier: Modifier = Decimal("0")
    price_modifier_type: ModifierType = "fixed"
    image_url: str | None = None
    image_alt_text: str | None = None
    additional_data: dict[str, Any] = Field(default_factory=dict)
    stock_quantity: Count | None = None
    is_in_stock: bool = True
    image: SkipJsonSchema[InstanceOf[ImageUpload] | None] = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def default_display_name(self) -> "OptionValuePayload":
        self.display_name = (self.display_name or "").strip() or self.option_value
        return self

    @property
    def value_key(self) -> str:
        return natural_key(self.option_value)

    @property
    def display_key(self) -> str:
        return natural_key(self.display_name)

    @property
    def columns(self) -> dict[str, Any]:
        """Column values for ``ProductCustomOptionValue``."""
        data = self.model_dump(include=OPTION_VALUE_COLUMNS)
        data["image_alt_text"] = self.image_alt_text or self.display_name
        return data


class OptionPayload(CatalogPayload):
    """A custom option with its values.

    ``option_values`` stays ``None`` when omitted so in-place patches can
    leave stored values untouched.
    """

    option_name: RequiredText
    option_type: OptionType = "select"
    is_required: bool = False
    sort_order: int | None = None
    placeholder_text: str | None = None
    help_text: str | None = None
    validation_rules: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    affects_price: bool = False
    price_modifier_type: ModifierType = "fixed"
    base_price_modifier: Modifier = Decimal("0")
    option_values: list[OptionValuePayload] | None = None

    @model_validator(mode="after")
    def number_values(self) -> "OptionPayload":
        for index, value in enumerate(self.option_values or []):
            if value.sort_order is None:
                value.sort_order = index
        return self

    @property
    def name_key(self) -> str:
        return natural_key(self.option_name)

    @property
    def columns(self) -> dict[str, Any]:
        """Column values for ``ProductCustomOption``."""
        return self.model_dump(exclude={"option_values"})


class OptionList(CatalogPayload):
    """A full option collection, numbered in input order."""

    custom_options: list[OptionPayload] = Field(default_factory=list)

    @model_validator(mode="after")
    def number_options(self) -> "OptionList":
        for index, option in enumerate(self.custom_options):
            if option.sort_order is None:
                option.sort_order = index
        return self


# ============================================================================
# Products
# ============================================================================


class ProductAttributes(CatalogPayload):
    """Product fields shared by create and edit, all optional."""

    title: RequiredText | None = None
    description: RequiredText | None = None
    short_description: str | None = None
    meta_title: str | None = None
    meta_description: str | None = None
    meta_keywords: str | None = None

    sku: RequiredText | None = None
    slug: RequiredText | None = None
    barcode: RequiredText | None = None
    ean: RequiredText | None = None

    weight: Amount | None = None
    weight_unit: WeightUnit | None = None
    width: Amount | None = None
    height: Amount | None = None
    length: Amount | None = None
    thickness: Amount | None = None
    depth: Amount | None = None
    measures_unit: MeasuresUnit | None = None
    unit_type: UnitType | None = None
    lead_time: Count | None = None
    score: Score | None = None

    purchase_price_nett: Amount | None = None
    regular_price_nett: Amount | None = None
    discount_percentage_nett: Percentage | None = None
    tax_id: UUID | None = None
    company_id: UUID | None = None
    supplier_id: UUID | None = None

    mark_as_new: bool | None = None
    mark_as_featured: bool | None = None
    mark_as_top_seller: bool | None = None
    is_on_sale: bool | None = None
    is_special_offer: bool | None = None
    shipping_free: bool | None = None
    is_available_on_stock: bool | None = None
    is_digital: bool | None = None
    is_physical: bool | None = None
    is_delivery_only: bool | None = None

    custom_details: list[CustomDetailPayload] | None = None
    categories: list[CategoryLink] | None = None
    services: list[ServicePayload] | None = None
    custom_options: list[OptionPayload] | None = None

    @field_validator("ean")
    @classmethod
    def check_ean(cls, value: str | None) -> str | None:
        if value is not None and not is_valid_ean13(value):
            raise ValueError("ean is not a valid EAN-13 code")
        return value

    @model_validator(mode="after")
    def number_options(self) -> "ProductAttributes":
        for index, option in enumerate(self.custom_options or []):
            if option.sort_order is None:
                option.sort_order = index
        return self


class ProductCreate(ProductAttributes):
    """Payload of a new product."""

    title: RequiredText
    description: RequiredText
    weight: Amount
    weight_unit: WeightUnit
    measures_unit: MeasuresUnit
    unit_type: UnitType
    purchase_price_nett: Amount
    regular_price_nett: Amount
    tax_id: UUID

    is_published: bool = False
    images: list[HostedImage] | None = None
    main_image_url: str | None = None


class ProductEdit(ProductAttributes):
    """Partial update; only fields present in the payload are applied."""

    keep_nulls: ClassVar[bool] = True

    existing_images: list[HostedImage] | None = None

    @model_validator(mode="after")
    def required_stay_set(self) -> "ProductEdit":
        for name in REQUIRED_PRODUCT_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} is required")
        return self

    @property
    def supplied(self) -> set[str]:
        """Names of the fields present in the payload."""
        return set(self.model_fields_set)


# ============================================================================
# Error Translation
# ============================================================================

ModelT = TypeVar("ModelT", bound=BaseModel)

_ITEM_LABELS = {
    "services": "Service",
    "custom_options": "Option",
    "options": "Option",
    "option_values": "value",
    "categories": "Category",
    "images": "Image",
    "existing_images": "Image",
    "custom_details": "Detail",
}


def _field_path(loc: tuple[int | str, ...]) -> str:
    return ".".join(str(part) for part in loc) or "payload"


def describe_error(error: dict[str, Any]) -> str:
    """Render one pydantic error as a catalog message.

    Items inside lists are prefixed with their 1-based position, for
    example ``Service #2: title is required``.
    """
    loc: tuple[int | str, ...] = tuple(error.get("loc", ()))
    prefix_parts = []
    name = "payload"
    for position, part in enumerate(loc):
        if isinstance(part, int):
            parent = loc[position - 1] if position else ""
            prefix_parts.append(f"{_ITEM_LABELS.get(str(parent), 'Item')} #{part + 1}")
        else:
            name = part
    prefix = f"{' '.join(prefix_parts)}: " if prefix_parts else ""

    kind = error["type"]
    ctx = error.get("ctx") or {}
    if kind == "missing" or kind == "string_too_short" or ("input" in error and error["input"] is None):
        return f"{prefix}{name} is required"
    if kind == "value_error":
        return f"{prefix}{ctx.get('error', error['msg'])}"
    if kind in ("uuid_parsing", "uuid_type"):
        return f"{prefix}Invalid {name} format"
    if kind == "greater_than_equal":
        return f"{prefix}{name} cannot be negative"
    if kind == "less_than_equal":
        return f"{prefix}{name} cannot exceed {ctx.get('le')}"
    if kind == "literal_error":
        return f"{prefix}{name} must be one of {ctx.get('expected')}"
    if kind == "list_type":
        return f"{prefix}{name} must be a list"
    if kind in ("dict_type", "model_type", "model_attributes_type"):
        return f"{prefix}{name} must be an object"
    if kind == "finite_number":
        return f"{prefix}{name} must be a finite number"
    if kind.startswith("decimal_") or kind.startswith("float_"):
        return f"{prefix}{name} must be a number"
    if kind.startswith("int_"):
        return f"{prefix}{name} must be an integer"
    if kind.startswith("bool_"):
        return f"{prefix}{name} must be a boolean"
    return f"{prefix}{name}: {error['msg']}"


def validate_payload(model: type[ModelT], data: Any) -> ModelT:
    """Parse ``data`` into ``model``.

    Args:
        model: Payload model.
        data: Raw payload, or an already validated instance.

    Returns:
        The validated payload.

    Raises:
        ValidationError: Naming the first invalid field; every problem is
            listed under ``details["errors"]``.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {"field": _field_path(tuple(err["loc"])), "message": describe_error(err)}
            for err in e.errors(include_url=False)
        ]
        raise ValidationError(
            errors[0]["message"],
            details={"field": errors[0]["field"], "errors": errors},
        ) from e


def parse_uuid(value: Any, field_name: str) -> str:
    """Validate a UUID given as a path or query parameter.

    Raises:
        ValidationError: If the value is not a UUID.
    """
    try:
        return str(UUID(str(value)))
    except (TypeError, ValueError, AttributeError) as e:
        raise ValidationError(
            f"Invalid {field_name} format", details={"field": field_name, "value": str(value)}
        ) from e
