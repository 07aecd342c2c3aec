"""Pydantic schemas for orders.

This module exposes the request/validation schemas used by the orders API.
Fields are snake_case in Python and camelCase on the wire. The schemas only
check shapes and types; business rules (required buyer, positive amount on
the gateway path, required variant attribute, ...) live in the domain
service so that they produce the same errors whatever the entry point.
"""

import re
from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
SHIPPING_ALIASES = AliasChoices("shippingAddress", "shippingAddresses", "shipping")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class LineItemIn(_CamelModel):
    """Input schema for a single order line item.

    Attributes:
        product_ref: Catalog reference of the product.
        quantity: Positive integer indicating units requested.
        unit_price: Unit price in major currency units.
        variant: Variant attributes, e.g. ``{"size": "M"}``.
    """

    product_ref: str = Field(min_length=1, max_length=128)
    quantity: int = Field(default=1, gt=0)
    unit_price: Optional[float] = Field(default=None, ge=0)
    variant: dict[str, Union[str, int, float]] = Field(default_factory=dict)


class ShippingAddressIn(_CamelModel):
    name: str = ""
    phone: str = ""
    line1: str = ""
    line2: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = ""
    country: str = ""


def _as_address_list(v):
    if v is None or isinstance(v, list):
        return v
    return [v]


class CreateOrderDTO(_CamelModel):
    """Schema for creating an order.

    Attributes:
        buyer_id: Opaque identifier of the purchaser.
        amount: Amount in major units (legacy; see ``amount_minor_units``).
        amount_minor_units: Explicit amount in minor units.
        currency: 3-letter ISO currency code, normalized to uppercase.
        items: Ordered line items.
        shipping_address: One address or a list of addresses.
        primary_address_index: Index of the address used for fulfillment.
        payment_method: ``gateway`` or ``cod`` (collect on delivery).
    """

    buyer_id: Optional[str] = None
    amount: Optional[float] = None
    amount_minor_units: Optional[int] = None
    currency: str = "INR"
    items: list[LineItemIn] = Field(default_factory=list)
    shipping_address: Optional[list[ShippingAddressIn]] = Field(default=None, validation_alias=SHIPPING_ALIASES)
    primary_address_index: int = Field(default=0, ge=0)
    payment_method: Literal["gateway", "cod"] = "gateway"

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Validate and normalize the currency code.

        Raises:
            ValueError: When the value is not three letters.
        """
        v2 = v.strip().upper()
        if not CURRENCY_RE.match(v2):
            raise ValueError("Invalid currency code")
        return v2

    @field_validator("shipping_address", mode="before")
    @classmethod
    def wrap_single_address(cls, v):
        return _as_address_list(v)

    @field_validator("payment_method", mode="before")
    @classmethod
    def normalize_payment_method(cls, v):
        if isinstance(v, str) and v.strip().lower() in ("cod", "collect-on-delivery", "cash-on-delivery"):
            return "cod"
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("buyer_id")
    @classmethod
    def strip_buyer(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class VerifyPaymentDTO(_CamelModel):
    """Schema for a payment verification callback.

    The three identifiers are optional at the schema level so that the domain
    service can report which one is missing. Checkout clients echo the order
    payload (buyer, items, address) back; those fields are accepted as-is and not
    validated.
    """

    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    client_signature: Optional[str] = None
    amount: Optional[float] = None
    amount_minor_units: Optional[int] = None
    buyer_id: Any = None
    items: Any = None
    shipping_address: Any = Field(default=None, validation_alias=SHIPPING_ALIASES)
