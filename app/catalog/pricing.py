"""Price derivation.

Turns nett purchase and regular prices, a discount percentage and a tax
rate into the full pricing block stored on a product, and computes the
price of a selected option combination on read.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from app.domain.exceptions import ValidationError
from app.domain.value_objects import DerivedPrices, round2, to_decimal

HUNDRED = Decimal("100")
ZERO = Decimal("0")

PRICE_MODIFIER_TYPES = frozenset({"fixed", "percentage"})


def derive_prices(
    purchase_price_nett: Any,
    regular_price_nett: Any,
    discount_percentage: Any = 0,
    tax_rate: Any = 0,
) -> DerivedPrices:
    """Derive gross and final prices.

    Gross values are ``round2(nett * (1 + tax_rate / 100))``. A positive
    discount yields ``final_nett = regular_nett * (1 - discount / 100)``;
    otherwise the final prices equal the regular ones.

    Example:
        >>> p = derive_prices(10, 20, 10, 20)
        >>> (p.regular_price_gross, p.final_price_nett, p.final_price_gross)
        (Decimal('24.00'), Decimal('18.0'), Decimal('21.60'))

    Args:
        purchase_price_nett: Purchase price before tax.
        regular_price_nett: List price before tax.
        discount_percentage: Discount 0-100, ``None`` means 0.
        tax_rate: Tax percentage, 20 means 20 %.

    Returns:
        Derived pricing block.

    Raises:
        ValidationError: On negative prices or tax, or a discount outside 0-100.
    """
    purchase = to_decimal(purchase_price_nett, "purchase_price_nett")
    regular = to_decimal(regular_price_nett, "regular_price_nett")
    discount = to_decimal(discount_percentage or 0, "discount_percentage_nett")
    rate = to_decimal(tax_rate, "tax_rate")

    for name, value in (
        ("purchase_price_nett", purchase),
        ("regular_price_nett", regular),
        ("tax_rate", rate),
    ):
        if value < ZERO:
            raise ValidationError(f"{name} cannot be negative", details={"field": name})
    if discount < ZERO or discount > HUNDRED:
        raise ValidationError(
            "discount_percentage_nett must be between 0 and 100",
            details={"field": "discount_percentage_nett"},
        )

    multiplier = 1 + rate / HUNDRED
    regular_gross = round2(regular * multiplier)

    if discount > ZERO:
        final_nett = regular * (1 - discount / HUNDRED)
        final_gross = round2(final_nett * multiplier)
        is_discounted = True
    else:
        final_nett = regular
        final_gross = regular_gross
        is_discounted = False

    return DerivedPrices(
        purchase_price_nett=purchase,
        purchase_price_gross=round2(purchase * multiplier),
        regular_price_nett=regular,
        regular_price_gross=regular_gross,
        discount_percentage=discount,
        final_price_nett=final_nett,
        final_price_gross=final_gross,
        is_discounted=is_discounted,
        tax_rate=rate,
    )


def savings(regular_price: Any, final_price: Any) -> Decimal:
    """Amount saved, never negative."""
    diff = to_decimal(regular_price, "regular_price") - to_decimal(final_price, "final_price")
    return round2(max(diff, ZERO))


def gross_price(nett_price: Any, tax_rate: Any) -> Decimal:
    """Gross price of a nett amount under a tax rate (percent)."""
    rate = to_decimal(tax_rate, "tax_rate")
    return round2(to_decimal(nett_price, "price_nett") * (1 + rate / HUNDRED))


def modifier_delta(modifier: Any, modifier_type: str, base_price: Any) -> Decimal:
    """Price delta of one modifier.

    Args:
        modifier: Modifier amount, or percentage for percentage modifiers.
        modifier_type: ``fixed`` or ``percentage``.
        base_price: Price a percentage applies to.

    Returns:
        Unrounded delta.
    """
    amount = to_decimal(modifier or 0, "price_modifier")
    if modifier_type == "percentage":
        return to_decimal(base_price, "base_price") * amount / HUNDRED
    return amount


def selection_price(
    base_price: Any,
    selections: Iterable[tuple[Any, Any | None]],
) -> Decimal:
    """Price of a product with a set of selected option values.

    Each selection is ``(option, value)`` where either side may be an ORM
    row or a mapping. An option that ``affects_price`` contributes its
    ``base_price_modifier``; a value contributes its ``price_modifier``.
    Percentages always apply to ``base_price``.

    Args:
        base_price: Final price of the product.
        selections: Selected ``(option, value)`` pairs; ``value`` may be
            ``None`` for free-form options (text, date...).

    Returns:
        Rounded total price.
    """
    base = to_decimal(base_price, "base_price")
    total = base
    for option, value in selections:
        if _get(option, "affects_price", False):
            total += modifier_delta(
                _get(option, "base_price_modifier", 0),
                _get(option, "price_modifier_type", "fixed"),
                base,
            )
        if value is not None:
            total += modifier_delta(
                _get(value, "price_modifier", 0),
                _get(value, "price_modifier_type", "fixed"),
                base,
            )
    return round2(total)


def _get(obj: Any, name: str, default: Any) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)
