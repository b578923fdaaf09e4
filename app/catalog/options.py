"""Custom options and option values of a product.

Options (size, colour, engraving text...) belong to one product, values
belong to one option. A full replace of a product's options is applied as
a diff keyed on the normalized option name and value: matched rows are
updated in place and keep their ids, unmatched incoming rows are created
and unmatched stored rows are deleted.

Value images survive partial updates. For every resulting value the image
URL is, in order: a newly uploaded file, an ``image_url`` sent by the
caller, the URL of the matched stored value, a lookup in the preservation
map built from the stored values before the update, or nothing.
"""

from collections.abc import Iterable
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.catalog.models import Product, ProductCustomOption, ProductCustomOptionValue
from app.catalog.payloads import (
    OptionList,
    OptionPayload,
    OptionValuePayload,
    natural_key,
    parse_uuid,
    validate_payload,
)
from app.domain.exceptions import DependencyFailure, NotFoundError
from app.domain.value_objects import ImageUpload
from app.infrastructure.image_store import ImageStore, ImageUploadError

logger = structlog.get_logger()

ImageKey = tuple[str, ...]


def parse_options(raw: Any) -> list[OptionPayload]:
    """Validate a full option list before anything is written.

    Options without a ``sort_order`` take their position in the list.

    Raises:
        ValidationError: If any option or value is invalid.
    """
    if raw is None:
        return []
    return validate_payload(OptionList, {"custom_options": raw}).custom_options


# ============================================================================
# Image Preservation
# ============================================================================


def _ordered_options(options: Iterable[ProductCustomOption]) -> list[ProductCustomOption]:
    return sorted(options, key=lambda o: o.sort_order)


def _ordered_values(values: Iterable[ProductCustomOptionValue]) -> list[ProductCustomOptionValue]:
    return sorted(values, key=lambda v: v.sort_order)


def _image_keys(name: str, option_value: str, display_name: str) -> tuple[ImageKey, ...]:
    return ((name, option_value), (name, display_name), (option_value,), (display_name,))


def build_image_map(options: Iterable[ProductCustomOption]) -> dict[ImageKey, str]:
    """Map normalized value keys to stored image URLs.

    Keys are ``(name, value)``, ``(name, display)``, ``(value,)`` and
    ``(display,)``. The first stored value (by option order, then value
    order) wins a key.
    """
    image_map: dict[ImageKey, str] = {}
    for option in _ordered_options(options):
        name = natural_key(option.option_name)
        for value in _ordered_values(option.values):
            if not value.image_url:
                continue
            keys = _image_keys(name, natural_key(value.option_value), natural_key(value.display_name))
            for key in keys:
                image_map.setdefault(key, value.image_url)
    return image_map


def lookup_image(image_map: dict[ImageKey, str], option_name: str, value: OptionValuePayload) -> str | None:
    """Find a preserved image URL for an incoming value."""
    for key in _image_keys(natural_key(option_name), value.value_key, value.display_key):
        if key in image_map:
            return image_map[key]
    return None


# ============================================================================
# Manager
# ============================================================================


class CustomOptionManager:
    """Owns persistence of custom options, values and value images.

    Args:
        session: Database session; callers own the transaction.
        image_store: Store for value images.
    """

    def __init__(self, session: Session, image_store: ImageStore) -> None:
        self.session = session
        self.image_store = image_store

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_product(self, product_id: str) -> Product:
        product_id = parse_uuid(product_id, "product_id")
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    def get_option(self, option_id: str) -> ProductCustomOption:
        """Load an option by id.

        Raises:
            ValidationError: If the id is not a UUID.
            NotFoundError: If the option does not exist.
        """
        option_id = parse_uuid(option_id, "option_id")
        option = self.session.get(ProductCustomOption, option_id)
        if option is None:
            raise NotFoundError("CustomOption", option_id, "Custom option not found")
        return option

    # ------------------------------------------------------------------
    # Value images
    # ------------------------------------------------------------------

    def _upload(self, upload: ImageUpload, option_id: str) -> str:
        return self.image_store.upload(
            upload.content,
            upload.filename,
            f"custom-options/{option_id}/values",
            "public-read",
        )

    def _resolve_image(
        self,
        option_id: str,
        option_name: str,
        value: OptionValuePayload,
        matched: ProductCustomOptionValue | None,
        image_map: dict[ImageKey, str],
    ) -> str | None:
        preserved = (
            value.image_url
            or (matched.image_url if matched is not None else None)
            or lookup_image(image_map, option_name, value)
        )
        if value.image is None:
            return preserved
        try:
            return self._upload(value.image, option_id)
        except ImageUploadError as e:
            logger.warning(
                "Option value image upload failed, keeping preserved image",
                option_id=option_id,
                option_value=value.option_value,
                error=str(e),
            )
            return preserved

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _apply_values(
        self,
        option: ProductCustomOption,
        values: list[OptionValuePayload],
        image_map: dict[ImageKey, str],
    ) -> None:
        """Diff ``values`` into ``option.values``."""
        remaining = _ordered_values(option.values)

        for value in values:
            matched = next(
                (v for v in remaining if natural_key(v.option_value) == value.value_key),
                None,
            ) or next(
                (v for v in remaining if natural_key(v.display_name) == value.display_key),
                None,
            )
            image_url = self._resolve_image(option.id, option.option_name, value, matched, image_map)

            if matched is not None:
                remaining.remove(matched)
                for name, field_value in value.columns.items():
                    setattr(matched, name, field_value)
                matched.image_url = image_url
            else:
                option.values.append(
                    ProductCustomOptionValue(
                        id=str(uuid4()),
                        image_url=image_url,
                        **value.columns,
                    )
                )

        for stale in remaining:
            option.values.remove(stale)

    def _new_option(
        self, product: Product, parsed: OptionPayload, image_map: dict[ImageKey, str]
    ) -> ProductCustomOption:
        option = ProductCustomOption(id=str(uuid4()), **parsed.columns)
        product.custom_options.append(option)
        self._apply_values(option, parsed.option_values or [], image_map)
        return option

    def create_for_product(self, product: Product, options: list[OptionPayload]) -> list[ProductCustomOption]:
        """Append new options to a product (no diffing)."""
        created = [self._new_option(product, parsed, {}) for parsed in options]
        self.session.flush()
        return created

    def replace_for_product(self, product: Product, options: list[OptionPayload]) -> list[ProductCustomOption]:
        """Make ``product``'s options equal to ``options``, preserving images.

        Args:
            product: Product whose options are replaced.
            options: Validated desired option list.

        Returns:
            Resulting options in sort order.
        """
        stored = _ordered_options(product.custom_options)
        image_map = build_image_map(stored)

        remaining = list(stored)
        for parsed in options:
            matched = next((o for o in remaining if natural_key(o.option_name) == parsed.name_key), None)
            if matched is None:
                self._new_option(product, parsed, image_map)
                continue
            remaining.remove(matched)
            for name, field_value in parsed.columns.items():
                setattr(matched, name, field_value)
            self._apply_values(matched, parsed.option_values or [], image_map)

        for stale in remaining:
            product.custom_options.remove(stale)

        self.session.flush()
        logger.info(
            "Replaced custom options",
            product_id=product.id,
            option_count=len(options),
            deleted_count=len(remaining),
        )
        return _ordered_options(product.custom_options)

    def create_options(self, product_id: str, options: list[Any]) -> list[ProductCustomOption]:
        """Add options to an existing product.

        Raises:
            NotFoundError: If the product does not exist.
            ValidationError: If any option is invalid; nothing is written.
        """
        parsed = parse_options(options)
        product = self._get_product(product_id)
        created = self.create_for_product(product, parsed)
        logger.info("Created custom options", product_id=product_id, option_count=len(created))
        return created

    def update_options(self, product_id: str, options: list[Any]) -> list[ProductCustomOption]:
        """Replace all options of a product.

        Raises:
            NotFoundError: If the product does not exist.
            ValidationError: If any option is invalid; nothing is written.
        """
        parsed = parse_options(options)
        product = self._get_product(product_id)
        return self.replace_for_product(product, parsed)

    def update_option(self, option_id: str, patch: dict[str, Any]) -> ProductCustomOption:
        """Update one option in place.

        Only supplied fields change. When ``option_values`` is supplied the
        values are diffed against the stored ones, images preserved.

        Raises:
            NotFoundError: If the option does not exist.
            ValidationError: If the patched option is invalid.
        """
        option = self.get_option(option_id)
        merged = {
            "option_name": option.option_name,
            "option_type": option.option_type,
            "is_required": option.is_required,
            "sort_order": option.sort_order,
            "placeholder_text": option.placeholder_text,
            "help_text": option.help_text,
            "validation_rules": option.validation_rules,
            "is_active": option.is_active,
            "affects_price": option.affects_price,
            "price_modifier_type": option.price_modifier_type,
            "base_price_modifier": option.base_price_modifier,
        }
        merged.update({k: v for k, v in patch.items() if k != "id"})
        parsed = validate_payload(OptionPayload, merged)

        image_map = build_image_map([option])
        for name, field_value in parsed.columns.items():
            setattr(option, name, field_value)
        if parsed.option_values is not None:
            self._apply_values(option, parsed.option_values, image_map)

        self.session.flush()
        logger.info("Updated custom option", option_id=option_id)
        return option

    def delete_option(self, option_id: str) -> bool:
        """Delete an option and its values.

        Raises:
            NotFoundError: If the option does not exist.
        """
        option = self.get_option(option_id)
        self.session.delete(option)
        self.session.flush()
        logger.info("Deleted custom option", option_id=option_id)
        return True

    def upload_value_image(self, option_id: str, value_id: str, upload: ImageUpload) -> ProductCustomOptionValue:
        """Upload and attach an image to one option value.

        Raises:
            ValidationError: If either id is not a UUID.
            NotFoundError: If the value does not belong to the option.
            DependencyFailure: If the image store rejects the upload.
        """
        option_id = parse_uuid(option_id, "option_id")
        value_id = parse_uuid(value_id, "value_id")
        value = self.session.execute(
            select(ProductCustomOptionValue).where(
                ProductCustomOptionValue.id == value_id,
                ProductCustomOptionValue.option_id == option_id,
            )
        ).scalar_one_or_none()
        if value is None:
            raise NotFoundError("CustomOptionValue", value_id, "Custom option value not found")

        try:
            image_url = self._upload(upload, option_id)
        except ImageUploadError as e:
            raise DependencyFailure(
                "Failed to upload option value image",
                details={"option_id": option_id, "value_id": value_id, "error": e.message},
            ) from e

        value.image_url = image_url
        value.image_alt_text = value.display_name or value.option_value
        self.session.flush()
        return value

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_options(self, product_id: str) -> list[dict[str, Any]]:
        """Active options of a product with their active values, in sort order."""
        self._get_product(product_id)
        options = self.session.execute(
            select(ProductCustomOption).where(
                ProductCustomOption.product_id == product_id,
                ProductCustomOption.is_active.is_(True),
            )
        ).scalars().all()
        return [serialize_option(option, active_only=True) for option in _ordered_options(options)]


def serialize_option(option: ProductCustomOption, active_only: bool = False) -> dict[str, Any]:
    """Serialize an option with its values in sort order."""
    data = option.to_dict()
    values = _ordered_values(option.values)
    if active_only:
        values = [v for v in values if v.is_active]
    data["values"] = [v.to_dict() for v in values]
    return data
