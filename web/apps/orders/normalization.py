"""Payload normalization helpers shared by order creation and verification.

The document store enforces per-attribute length limits, so line items are
kept twice: a bounded human-readable summary and an unbounded JSON
serialization. Shipping addresses are likewise stored as JSON plus a set of
flattened attributes for the primary address, which allows exact-match
lookups on name, phone, postal code and so on.
"""

import json
import math
import secrets
from dataclasses import replace
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

DEFAULT_MINOR_UNIT_THRESHOLD = 10_000
ITEM_SUMMARY_MAX_LENGTH = 120
ITEMS_SUMMARY_MAX_LENGTH = 1000
VERIFICATION_DETAIL_MAX_LENGTH = 2000

ADDRESS_FIELDS = {
    "name": "shippingName",
    "phone": "shippingPhone",
    "line1": "shippingLine1",
    "line2": "shippingLine2",
    "city": "shippingCity",
    "region": "shippingRegion",
    "postal_code": "shippingPostalCode",
    "country": "shippingCountry",
}


# ---------------- Amounts ---------------- #

def _as_number(value) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("amount must be numeric")
    try:
        number = Decimal(str(value).strip())
    except ArithmeticError:
        raise ValueError("amount must be numeric")
    if not number.is_finite():
        raise ValueError("amount must be finite")
    return number


def to_minor_units(amount=None, amount_minor_units=None, threshold: int = DEFAULT_MINOR_UNIT_THRESHOLD) -> Optional[int]:
    """Resolve a client-sent amount into minor currency units.

    An explicit ``amount_minor_units`` always wins and must be an integer.
    Otherwise ``amount`` is disambiguated: integral values at or above
    ``threshold`` are taken as already expressed in minor units; anything
    smaller or fractional is a major-unit value and is multiplied by 100,
    rounding half up.

    Examples:
        >>> to_minor_units(499)
        49900
        >>> to_minor_units(49900)
        49900
        >>> to_minor_units(amount_minor_units=250)
        250

    Args:
        amount: Legacy amount (int, float or numeric string), or None.
        amount_minor_units: Explicit amount in minor units, or None.
        threshold: Boundary between major- and minor-unit integers.

    Returns:
        Optional[int]: The amount in minor units, or None when neither input
        was supplied.

    Raises:
        ValueError: When the supplied value is not a finite number, or when
            ``amount_minor_units`` is not integral.
    """
    if amount_minor_units is not None:
        number = _as_number(amount_minor_units)
        if number != number.to_integral_value():
            raise ValueError("amountMinorUnits must be an integer")
        return int(number)

    if amount is None or (isinstance(amount, str) and not amount.strip()):
        return None

    number = _as_number(amount)
    if number == number.to_integral_value() and number >= threshold:
        return int(number)
    return int((number * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---------------- Line items ---------------- #

def item_summary(item) -> str:
    """One bounded, human-readable line for a single item."""
    text = f"{item.product_ref} x{item.quantity}"
    if item.variant:
        attrs = ", ".join(f"{k}={v}" for k, v in sorted(item.variant.items()))
        text += f" [{attrs}]"
    if item.unit_price is not None:
        text += f" @ {item.unit_price}"
    return truncate(text, ITEM_SUMMARY_MAX_LENGTH)


def summarize_items(items) -> str:
    return truncate("; ".join(item_summary(i) for i in items), ITEMS_SUMMARY_MAX_LENGTH)


def serialize_items(items) -> str:
    return json.dumps(
        [
            {
                "productRef": i.product_ref,
                "quantity": i.quantity,
                "unitPrice": i.unit_price,
                "variant": dict(i.variant),
            }
            for i in items
        ],
        separators=(",", ":"),
        sort_keys=True,
    )


# ---------------- Addresses ---------------- #

def with_default_country(address, default_country: str):
    if address.country:
        return address
    return replace(address, country=default_country)


def flatten_address(address) -> dict:
    """Flatten an address into the ``shipping*`` document attributes."""
    return {attr: getattr(address, name) or "" for name, attr in ADDRESS_FIELDS.items()}


def serialize_addresses(addresses) -> str:
    return json.dumps(
        [{name: getattr(a, name) for name in ADDRESS_FIELDS} for a in addresses],
        separators=(",", ":"),
    )


# ---------------- Misc ---------------- #

def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)] + "..."


def truncate_json(payload: dict, limit: int) -> str:
    return truncate(json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str), limit)


def cod_order_id(now: datetime) -> str:
    # e.g. COD_20261018143005_9f2c1a
    return f"COD_{now.strftime('%Y%m%d%H%M%S')}_{secrets.token_hex(3)}"


def receipt_token(now: datetime) -> str:
    return f"rcpt_{math.floor(now.timestamp() * 1000)}"
