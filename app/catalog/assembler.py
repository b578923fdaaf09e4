"""Product record assembly.

Builds and updates persisted product aggregates: validation, identifier
issuance, price derivation, image storage, services, category links and
custom options. Also owns the lifecycle transitions and duplication.

Every method runs inside the caller's transaction and only flushes; the
application service commits once per operation.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.catalog.custom_details import process_custom_details
from app.catalog.identifiers import IdentifierGenerator, normalize_slug
from app.catalog.models import (
    Category,
    Company,
    Product,
    ProductCategory,
    ProductCustomOption,
    ProductCustomOptionValue,
    ProductService,
    Tax,
)
from app.catalog.options import CustomOptionManager
from app.catalog.payloads import (
    CategoryLink,
    CustomDetailPayload,
    HostedImage,
    ProductCreate,
    ProductEdit,
    ServicePayload,
    parse_uuid,
    validate_payload,
)
from app.catalog.pricing import derive_prices
from app.domain.exceptions import (
    ConflictError,
    DependencyFailure,
    NotFoundError,
    ValidationError,
)
from app.domain.state_machines import (
    ProductStatus,
    PublicationStatus,
    validate_publication_transition,
    validate_status_transition,
)
from app.domain.value_objects import ImageUpload, ProductImage, reorder_images
from app.infrastructure.image_store import ImageStore, ImageUploadError

logger = structlog.get_logger()

UNIQUE_FIELDS = ("sku", "slug", "barcode", "title", "ean")

PRICE_FIELDS = ("purchase_price_nett", "regular_price_nett", "discount_percentage_nett", "tax_id")

TEXT_FIELDS = (
    "description",
    "short_description",
    "meta_title",
    "meta_description",
    "meta_keywords",
    "weight_unit",
    "measures_unit",
    "unit_type",
)

FLAG_FIELDS = (
    "mark_as_new",
    "mark_as_featured",
    "mark_as_top_seller",
    "is_on_sale",
    "is_special_offer",
    "shipping_free",
    "is_available_on_stock",
    "is_digital",
    "is_physical",
    "is_delivery_only",
)

DIMENSION_FIELDS = ("weight", "width", "height", "length", "thickness", "depth")

BADGE_FIELDS = ("mark_as_new", "mark_as_featured", "mark_as_top_seller", "is_on_sale", "is_special_offer")

# Attributes carried over verbatim when a product is duplicated.
DUPLICATED_FIELDS = (
    "description",
    "short_description",
    "meta_title",
    "meta_description",
    "meta_keywords",
    "shipping_free",
    "is_available_on_stock",
    "is_digital",
    "is_physical",
    "is_delivery_only",
    "has_services",
    "has_custom_fields",
    "weight",
    "weight_unit",
    "width",
    "height",
    "length",
    "thickness",
    "depth",
    "measures_unit",
    "unit_type",
    "lead_time",
    "tax_id",
    "company_id",
    "supplier_id",
)


# ============================================================================
# Input Helpers
# ============================================================================


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _str_or_none(value: UUID | None) -> str | None:
    return str(value) if value is not None else None


def parse_categories(links: list[CategoryLink] | None) -> list[CategoryLink]:
    """Settle the primary flag of validated category links.

    Duplicates collapse onto the first occurrence. When no entry is flagged
    the first one becomes primary.

    Raises:
        ValidationError: If more than one entry is primary.
    """
    unique: list[CategoryLink] = []
    seen: set[UUID] = set()
    for link in links or []:
        if link.category_id in seen:
            continue
        seen.add(link.category_id)
        unique.append(link.model_copy())

    primaries = [link for link in unique if link.is_primary]
    if len(primaries) > 1:
        raise ValidationError(
            "Only one category can be primary", details={"field": "categories"}
        )
    if unique and not primaries:
        unique[0].is_primary = True
    return unique


def hosted_images(images: list[HostedImage] | None) -> list[ProductImage]:
    """Convert caller-supplied image metadata (already hosted images)."""
    return [ProductImage.from_dict(image.model_dump(exclude_none=True)) for image in images or []]


def detail_dicts(details: list[CustomDetailPayload] | None) -> list[dict[str, Any]] | None:
    if details is None:
        return None
    return [detail.model_dump(exclude_none=True) for detail in details]


# ============================================================================
# Results
# ============================================================================


@dataclass
class EditOutcome:
    """Result of an edit."""

    product: Product
    changed_fields: list[str] = field(default_factory=list)
    prices_rederived: bool = False


@dataclass
class DuplicationOutcome:
    """Result of a duplication with per-component counts."""

    product: Product
    source_id: str
    summary: dict[str, int] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)


# ============================================================================
# Assembler
# ============================================================================


class CatalogAssembler:
    """Creates, edits, duplicates and transitions products.

    Args:
        session: Database session; callers own the transaction.
        image_store: Store for product images.
        identifiers: Identifier generator, built from ``session`` if omitted.
        options: Custom option manager, built from ``session`` if omitted.
    """

    def __init__(
        self,
        session: Session,
        image_store: ImageStore,
        identifiers: IdentifierGenerator | None = None,
        options: CustomOptionManager | None = None,
    ) -> None:
        self.session = session
        self.image_store = image_store
        self.identifiers = identifiers or IdentifierGenerator(session)
        self.options = options or CustomOptionManager(session, image_store)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_product(self, product_id: str) -> Product:
        """Load a product by id.

        Raises:
            ValidationError: If the id is not a UUID.
            NotFoundError: If the product does not exist.
        """
        product_id = parse_uuid(product_id, "product_id")
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    def _active_tax(self, tax_id: Any) -> Tax:
        tax = self.session.get(Tax, parse_uuid(tax_id, "tax_id"))
        if tax is None or tax.is_inactive:
            raise NotFoundError("Tax", str(tax_id), "Tax not found or inactive")
        return tax

    def _active_company(self, company_id: Any, field_name: str) -> str:
        company = self.session.get(Company, parse_uuid(company_id, field_name))
        if company is None or company.is_inactive:
            label = "Supplier" if field_name == "supplier_id" else "Company"
            raise NotFoundError(label, str(company_id), f"{label} not found or inactive")
        return company.id

    def _usable_categories(self, links: list[CategoryLink]) -> None:
        if not links:
            return
        ids = [str(link.category_id) for link in links]
        found = {
            c.id: c
            for c in self.session.execute(select(Category).where(Category.id.in_(ids))).scalars()
        }
        for category_id in ids:
            category = found.get(category_id)
            if category is None or not category.is_usable:
                raise NotFoundError("Category", category_id, "Category not found or inactive")

    def _check_conflicts(self, candidates: dict[str, Any], exclude_id: str | None = None) -> None:
        """Check all unique identifiers with one query.

        Raises:
            ConflictError: Naming the first colliding field.
        """
        candidates = {k: v for k, v in candidates.items() if not _is_blank(v)}
        if not candidates:
            return
        stmt = select(Product).where(
            or_(*(getattr(Product, name) == value for name, value in candidates.items()))
        )
        if exclude_id:
            stmt = stmt.where(Product.id != exclude_id)
        existing = self.session.execute(stmt.limit(1)).scalars().first()
        if existing is None:
            return
        for name in UNIQUE_FIELDS:
            if name in candidates and getattr(existing, name) == candidates[name]:
                raise ConflictError(
                    f"A product with this {name} already exists",
                    details={"field": name, "value": candidates[name]},
                )
        raise ConflictError("A product with the same identifier already exists")

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def _store_images(self, uploads: Iterable[ImageUpload], sku: str, first_order: int = 0) -> list[ProductImage]:
        images = []
        for offset, upload in enumerate(uploads):
            try:
                url = self.image_store.upload(upload.content, upload.filename, "products", "public-read")
            except ImageUploadError as e:
                logger.error("Product image upload failed", sku=sku, filename=upload.filename, error=e.message)
                raise DependencyFailure(
                    "Failed to upload product image",
                    details={"filename": upload.filename, "error": e.message},
                ) from e
            images.append(
                ProductImage(
                    url=url,
                    alt_text=upload.filename,
                    order=first_order + offset,
                    file_name=upload.filename,
                    size_bytes=upload.size_bytes,
                )
            )
        return images

    @staticmethod
    def _set_images(product: Product, images: list[ProductImage]) -> None:
        ordered = reorder_images(images)
        product.images = [image.to_dict() for image in ordered]
        product.main_image_url = ordered[0].url if ordered else None

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    def _add_services(self, product: Product, services: list[ServicePayload]) -> int:
        for data in services:
            slug = self.identifiers.generate_slug(data.title, model=ProductService)
            service = ProductService(
                id=str(uuid4()),
                product_id=product.id,
                slug=slug,
                **data.model_dump(exclude={"company_id"}),
                company_id=_str_or_none(data.company_id) or product.company_id,
            )
            self.session.add(service)
            # Flush each service so the next slug check sees it.
            self.session.flush()
        return len(services)

    def _link_categories(self, product: Product, links: list[CategoryLink]) -> int:
        for link in links:
            self.session.add(
                ProductCategory(
                    id=str(uuid4()),
                    product_id=product.id,
                    category_id=str(link.category_id),
                    is_primary=link.is_primary,
                )
            )
        self.session.flush()
        return len(links)

    def _clear_children(self, product: Product, relation: str) -> None:
        for child in list(getattr(product, relation)):
            self.session.delete(child)
        self.session.flush()
        self.session.expire(product, [relation])

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, data: dict[str, Any] | ProductCreate, uploads: list[ImageUpload] | None = None) -> Product:
        """Create a product with its services, categories and options.

        Args:
            data: Product payload.
            uploads: Image files to store; the first becomes the main image.

        Returns:
            The persisted (flushed) product.

        Raises:
            ValidationError: Missing or malformed fields, or no image.
            ConflictError: A unique identifier is already taken.
            NotFoundError: Tax, company, supplier or category absent or inactive.
            DependencyFailure: An image could not be stored.
        """
        uploads = uploads or []
        payload = validate_payload(ProductCreate, data)

        title = payload.title
        options = payload.custom_options or []
        categories = parse_categories(payload.categories)
        services = payload.services or []
        hosted = hosted_images(payload.images)
        if not uploads and not hosted and payload.main_image_url:
            hosted = [ProductImage(url=payload.main_image_url)]
        if not uploads and not hosted:
            raise ValidationError("At least one image is required.", details={"field": "images"})

        # Identifiers
        if payload.slug is not None:
            slug = normalize_slug(payload.slug)
            if not slug:
                raise ValidationError("slug is invalid", details={"field": "slug"})
        else:
            slug = self.identifiers.generate_slug(title)
        sku = payload.sku or self.identifiers.generate_unique_sku()
        ean = payload.ean or self.identifiers.generate_ean13()
        barcode = payload.barcode or sku
        self._check_conflicts({"sku": sku, "slug": slug, "barcode": barcode, "title": title, "ean": ean})

        # References
        tax = self._active_tax(payload.tax_id)
        company_id = self._active_company(payload.company_id, "company_id") if payload.company_id else None
        supplier_id = self._active_company(payload.supplier_id, "supplier_id") if payload.supplier_id else None
        self._usable_categories(categories)

        prices = derive_prices(
            payload.purchase_price_nett,
            payload.regular_price_nett,
            payload.discount_percentage_nett or 0,
            tax.rate,
        )
        details = process_custom_details(detail_dicts(payload.custom_details))

        product = Product(
            id=str(uuid4()),
            sku=sku,
            slug=slug,
            barcode=barcode,
            ean=ean,
            title=title,
            status=ProductStatus.ACTIVE.value,
            is_active=True,
            is_published=payload.is_published,
            lead_time=payload.lead_time if payload.lead_time is not None else 5,
            score=payload.score or 0.0,
            custom_details=[d.to_dict() for d in details],
            has_custom_fields=bool(details),
            has_services=bool(services),
            tax_id=tax.id,
            company_id=company_id,
            supplier_id=supplier_id,
            **{
                name: getattr(payload, name)
                for name in TEXT_FIELDS + FLAG_FIELDS + DIMENSION_FIELDS
                if getattr(payload, name) is not None
            },
            **prices.to_columns(),
        )
        stored = self._store_images(uploads, sku, first_order=len(hosted))
        self._set_images(product, hosted + stored)

        self.session.add(product)
        self.session.flush()

        self._add_services(product, services)
        self._link_categories(product, categories)
        if options:
            self.options.create_for_product(product, options)

        logger.info(
            "Product created",
            product_id=product.id,
            sku=sku,
            slug=slug,
            services=len(services),
            categories=len(categories),
            custom_options=len(options),
        )
        return product

    # ------------------------------------------------------------------
    # Edit
    # ------------------------------------------------------------------

    def edit(
        self,
        product_id: str,
        data: dict[str, Any] | ProductEdit,
        new_uploads: list[ImageUpload] | None = None,
    ) -> EditOutcome:
        """Apply a partial update.

        Only supplied fields are validated and written. The slug follows a
        changed title unless one is given explicitly. Prices are re-derived
        only when a price, the discount or the tax changes.

        Args:
            product_id: Product to edit.
            data: Partial payload. ``existing_images`` replaces the image
                list (in the given order); ``new_uploads`` are appended.
            new_uploads: Image files to append.

        Returns:
            The edited product with the list of changed fields.

        Raises:
            ValidationError: Malformed fields or an edit that would leave no image.
            ConflictError: A supplied unique identifier is taken by another product.
            NotFoundError: Product or a supplied reference absent or inactive.
            DependencyFailure: A new image could not be stored.
        """
        product = self.get_product(product_id)
        new_uploads = new_uploads or []
        payload = validate_payload(ProductEdit, data)
        supplied = payload.supplied
        outcome = EditOutcome(product=product)

        categories = parse_categories(payload.categories) if payload.categories is not None else None

        # Identifiers
        candidates: dict[str, Any] = {}
        if payload.title is not None and payload.title != product.title:
            candidates["title"] = payload.title
            if payload.slug is None:
                candidates["slug"] = self.identifiers.generate_slug(payload.title, exclude_id=product.id)
        if payload.slug is not None:
            slug = normalize_slug(payload.slug)
            if not slug:
                raise ValidationError("slug is invalid", details={"field": "slug"})
            if slug != product.slug:
                candidates["slug"] = slug
        for name in ("sku", "barcode", "ean"):
            value = getattr(payload, name)
            if value is not None and value != getattr(product, name):
                candidates[name] = value
        self._check_conflicts(candidates, exclude_id=product.id)

        # References
        tax = self._active_tax(payload.tax_id) if payload.tax_id is not None else product.tax
        if "company_id" in supplied:
            product.company_id = (
                self._active_company(payload.company_id, "company_id") if payload.company_id else None
            )
            outcome.changed_fields.append("company_id")
        if "supplier_id" in supplied:
            product.supplier_id = (
                self._active_company(payload.supplier_id, "supplier_id") if payload.supplier_id else None
            )
            outcome.changed_fields.append("supplier_id")
        if categories is not None:
            self._usable_categories(categories)

        for name, value in candidates.items():
            setattr(product, name, value)
            outcome.changed_fields.append(name)

        # Prices
        if supplied.intersection(PRICE_FIELDS):

            def current(name: str) -> Any:
                return getattr(payload, name) if name in supplied else getattr(product, name)

            prices = derive_prices(
                current("purchase_price_nett"),
                current("regular_price_nett"),
                current("discount_percentage_nett") or 0,
                tax.rate,
            )
            for name, value in prices.to_columns().items():
                setattr(product, name, value)
            product.tax_id = tax.id
            outcome.prices_rederived = True
            outcome.changed_fields.extend(n for n in PRICE_FIELDS if n in supplied)

        # Plain attributes
        for name in TEXT_FIELDS + DIMENSION_FIELDS:
            if name in supplied:
                setattr(product, name, getattr(payload, name))
                outcome.changed_fields.append(name)
        for name in FLAG_FIELDS + ("lead_time", "score"):
            if getattr(payload, name) is not None:
                setattr(product, name, getattr(payload, name))
                outcome.changed_fields.append(name)
        if "custom_details" in supplied:
            details = process_custom_details(detail_dicts(payload.custom_details))
            product.custom_details = [d.to_dict() for d in details]
            product.has_custom_fields = bool(details)
            outcome.changed_fields.append("custom_details")

        # Images
        if payload.existing_images is not None or new_uploads:
            kept = (
                hosted_images(payload.existing_images)
                if payload.existing_images is not None
                else [ProductImage.from_dict(img) for img in product.images or []]
            )
            if not kept and not new_uploads:
                raise ValidationError("At least one image is required.", details={"field": "images"})
            stored = self._store_images(new_uploads, product.sku, first_order=len(kept))
            self._set_images(product, kept + stored)
            outcome.changed_fields.append("images")

        self.session.flush()

        # Children
        if payload.services is not None:
            self._clear_children(product, "services")
            self._add_services(product, payload.services)
            product.has_services = bool(payload.services)
            outcome.changed_fields.append("services")
        if categories is not None:
            self._clear_children(product, "category_links")
            self._link_categories(product, categories)
            outcome.changed_fields.append("categories")
        if payload.custom_options is not None:
            self.options.replace_for_product(product, payload.custom_options)
            outcome.changed_fields.append("custom_options")

        self.session.flush()
        logger.info(
            "Product updated",
            product_id=product.id,
            changed_fields=outcome.changed_fields,
            prices_rederived=outcome.prices_rederived,
        )
        return outcome

    # ------------------------------------------------------------------
    # Duplicate
    # ------------------------------------------------------------------

    def duplicate(self, product_id: str, overrides: dict[str, Any] | None = None) -> DuplicationOutcome:
        """Copy a product under new identifiers.

        The copy gets a new SKU, a new EAN (also used as barcode), a new
        slug and a ``(Copy <sku>)`` title unless one is given. Images keep
        their URLs under new ids; prices are re-derived with the source's
        tax; badges reset and the copy starts unpublished. Services,
        category links and options are copied one by one, each in its own
        savepoint, and a failing one is skipped.

        Raises:
            ValidationError: Malformed id or override.
            NotFoundError: Source product absent.
            ConflictError: The new title is already taken.
        """
        overrides = overrides or {}
        source = self.get_product(product_id)

        sku = self.identifiers.generate_unique_sku()
        ean = self.identifiers.generate_ean13()
        title = str(overrides.get("title") or f"{source.title} (Copy {sku})").strip()
        slug = self.identifiers.generate_slug(title)
        self._check_conflicts({"sku": sku, "slug": slug, "barcode": ean, "title": title, "ean": ean})

        prices = derive_prices(
            source.purchase_price_nett,
            source.regular_price_nett,
            source.discount_percentage_nett or 0,
            source.tax.rate,
        )

        images = [
            ProductImage(
                url=img.url,
                alt_text=img.alt_text,
                file_name=f"{sku}-{img.file_name}" if img.file_name else None,
                size_bytes=img.size_bytes,
            )
            for img in (ProductImage.from_dict(raw) for raw in source.images or [])
        ]

        copy = Product(
            id=str(uuid4()),
            sku=sku,
            slug=slug,
            barcode=ean,
            ean=ean,
            title=title,
            status=ProductStatus.ACTIVE.value,
            is_active=True,
            is_published=False,
            score=0.0,
            custom_details=[dict(d) for d in source.custom_details or []],
            **{name: getattr(source, name) for name in DUPLICATED_FIELDS},
            **{name: bool(overrides.get(name, False)) for name in BADGE_FIELDS},
            **prices.to_columns(),
        )
        if overrides.get("is_available_on_stock") is not None:
            copy.is_available_on_stock = bool(overrides["is_available_on_stock"])
        self._set_images(copy, images)
        self.session.add(copy)
        self.session.flush()

        outcome = DuplicationOutcome(
            product=copy,
            source_id=source.id,
            summary={
                "images": len(images),
                "services": 0,
                "categories": 0,
                "custom_options": 0,
                "option_values": 0,
            },
        )

        for service in list(source.services):
            self._copy_step(outcome, f"service:{service.id}", lambda s=service: self._copy_service(copy, s))
        for link in list(source.category_links):
            self._copy_step(outcome, f"category:{link.category_id}", lambda lnk=link: self._copy_link(copy, lnk))
        for option in sorted(source.custom_options, key=lambda o: o.sort_order):
            self._copy_step(outcome, f"option:{option.id}", lambda o=option: self._copy_option(copy, o))

        self.session.expire(copy, ["services", "category_links", "custom_options"])
        logger.info(
            "Product duplicated",
            source_product_id=source.id,
            product_id=copy.id,
            summary=outcome.summary,
            skipped=outcome.skipped,
        )
        return outcome

    def _copy_step(self, outcome: DuplicationOutcome, label: str, step: Callable[[], dict[str, int]]) -> None:
        try:
            with self.session.begin_nested():
                counts = step()
                self.session.flush()
        except Exception as e:
            logger.warning("Skipped duplicating component", component=label, error=str(e))
            outcome.skipped.append(label)
            return
        for key, count in counts.items():
            outcome.summary[key] += count

    def _copy_service(self, copy: Product, service: ProductService) -> dict[str, int]:
        self.session.add(
            ProductService(
                id=str(uuid4()),
                product_id=copy.id,
                company_id=service.company_id,
                title=service.title,
                slug=self.identifiers.generate_slug(service.title, model=ProductService),
                description=service.description,
                full_description=service.full_description,
                price=service.price,
                thumbnail=service.thumbnail,
                service_type=service.service_type,
                is_required=service.is_required,
                is_active=service.is_active,
                standalone=service.standalone,
            )
        )
        return {"services": 1}

    def _copy_link(self, copy: Product, link: ProductCategory) -> dict[str, int]:
        self.session.add(
            ProductCategory(
                id=str(uuid4()),
                product_id=copy.id,
                category_id=link.category_id,
                is_primary=link.is_primary,
            )
        )
        return {"categories": 1}

    def _copy_option(self, copy: Product, option: ProductCustomOption) -> dict[str, int]:
        new_option = ProductCustomOption(
            id=str(uuid4()),
            product_id=copy.id,
            option_name=option.option_name,
            option_type=option.option_type,
            is_required=option.is_required,
            sort_order=option.sort_order,
            placeholder_text=option.placeholder_text,
            help_text=option.help_text,
            validation_rules=dict(option.validation_rules or {}),
            is_active=option.is_active,
            affects_price=option.affects_price,
            price_modifier_type=option.price_modifier_type,
            base_price_modifier=option.base_price_modifier,
        )
        self.session.add(new_option)
        for value in option.values:
            self.session.add(
                ProductCustomOptionValue(
                    id=str(uuid4()),
                    option_id=new_option.id,
                    option_value=value.option_value,
                    display_name=value.display_name,
                    sort_order=value.sort_order,
                    is_default=value.is_default,
                    is_active=value.is_active,
                    price_modifier=value.price_modifier,
                    price_modifier_type=value.price_modifier_type,
                    image_url=value.image_url,
                    image_alt_text=value.image_alt_text,
                    additional_data=dict(value.additional_data or {}),
                    stock_quantity=value.stock_quantity,
                    is_in_stock=value.is_in_stock,
                )
            )
        return {"custom_options": 1, "option_values": len(option.values)}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def publish(self, product_id: str) -> Product:
        """Make an active, unpublished product visible to customers.

        Raises:
            InvalidStateError: If inactive or already published.
        """
        product = self.get_product(product_id)
        validate_publication_transition(
            product.id, product.is_published, PublicationStatus.PUBLISHED, is_active=product.is_active
        )
        product.is_published = True
        self.session.flush()
        logger.info("Product published", product_id=product.id)
        return product

    def unpublish(self, product_id: str) -> Product:
        """Hide a published product.

        Raises:
            InvalidStateError: If not published.
        """
        product = self.get_product(product_id)
        validate_publication_transition(product.id, product.is_published, PublicationStatus.UNPUBLISHED)
        product.is_published = False
        self.session.flush()
        logger.info("Product unpublished", product_id=product.id)
        return product

    def archive(self, product_id: str) -> Product:
        """Archive a product (``status=archived`` and ``is_active=False`` together).

        Raises:
            InvalidStateError: If already archived.
        """
        product = self.get_product(product_id)
        validate_status_transition(product.id, product.status, ProductStatus.ARCHIVED)
        product.status = ProductStatus.ARCHIVED.value
        product.is_active = False
        self.session.flush()
        logger.info("Product archived", product_id=product.id)
        return product

    def unarchive(self, product_id: str) -> Product:
        """Restore an archived product to active.

        Raises:
            InvalidStateError: If not archived.
        """
        product = self.get_product(product_id)
        validate_status_transition(product.id, product.status, ProductStatus.ACTIVE)
        product.status = ProductStatus.ACTIVE.value
        product.is_active = True
        self.session.flush()
        logger.info("Product unarchived", product_id=product.id)
        return product
