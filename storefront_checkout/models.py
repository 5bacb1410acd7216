"""
Pydantic models for cart rows, delivery details, order drafts and API payloads.
"""
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from typing import Any, Dict, List, Optional
from decimal import Decimal

from storefront_checkout.pricing import describe_selection, parse_amount, resolve_row_id


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class HumanAttribute(BaseModel):
    """Display-only description of one selected option"""
    model_config = ConfigDict(extra="ignore")

    attribute_id: Optional[str] = None
    option_id: Optional[str] = None
    attribute_name: str = ""
    option_label: str = ""
    price_delta: str = Field("0.00", description="Decimal string added to the base price")

    @field_validator("attribute_id", "option_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("attribute_name", "option_label", "price_delta", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _text(v)


class CartRow(BaseModel):
    """Client-side projection of one server cart entry"""
    model_config = ConfigDict(validate_assignment=True)

    row_id: str = Field(..., description="Unique row key within a cart snapshot")
    cart_item_id: Optional[str] = None
    product_id: str
    product_name: str = ""
    product_image: str = ""
    variant_signature: str = ""
    selected_size: str = ""
    selected_attributes: Dict[str, str] = Field(default_factory=dict)
    selected_attributes_human: List[HumanAttribute] = Field(default_factory=list)
    selection_description: str = ""
    base_price: Decimal = Decimal("0")
    attributes_price_delta: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")
    line_total: Decimal = Decimal("0")
    quantity: int = Field(1, ge=1, description="Item quantity")


class RawCartItem(BaseModel):
    """
    One cart item as the backend sends it.

    The backend has used several names for the same figures over time, so the
    price breakdown is flattened here and every fallback resolved before the
    item becomes a CartRow. Malformed amounts read as zero.
    """
    model_config = ConfigDict(extra="ignore")

    cart_item_id: Optional[str] = None
    product_id: str = Field(..., min_length=1)
    quantity: int = 1
    product_name: str = ""
    product_image: str = ""
    selected_size: str = ""
    selected_attributes: Dict[str, str] = Field(default_factory=dict)
    selected_attributes_human: List[HumanAttribute] = Field(default_factory=list)
    variant_signature: str = ""
    base_price: Decimal = Decimal("0")
    attributes_price_delta: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")
    line_total: Decimal = Decimal("0")

    @model_validator(mode="before")
    @classmethod
    def flatten(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            raise ValueError("cart item must be an object")

        breakdown = data.get("price_breakdown")
        if not isinstance(breakdown, dict):
            breakdown = {}

        def first(*values: Any) -> Any:
            for v in values:
                if v is not None:
                    return v
            return None

        try:
            quantity = int(data.get("quantity") or 1)
        except (TypeError, ValueError):
            quantity = 1

        attributes = data.get("selected_attributes")
        human = data.get("selected_attributes_human")

        return {
            "cart_item_id": _text(data.get("cart_item_id")) or None,
            "product_id": _text(data.get("product_id")),
            "quantity": max(1, quantity),
            "product_name": _text(data.get("product_name")),
            "product_image": _text(data.get("product_image")),
            "selected_size": _text(data.get("selected_size")),
            "selected_attributes": (
                {str(k): _text(v) for k, v in attributes.items()}
                if isinstance(attributes, dict) else {}
            ),
            "selected_attributes_human": (
                [h for h in human if isinstance(h, dict)]
                if isinstance(human, list) else []
            ),
            "variant_signature": _text(data.get("variant_signature")),
            "base_price": parse_amount(breakdown.get("base_price")),
            "attributes_price_delta": parse_amount(first(
                breakdown.get("attributes_delta"),
                data.get("attributes_price_delta"),
            )),
            "unit_price": parse_amount(first(
                breakdown.get("unit_price"),
                data.get("unit_price"),
                data.get("product_price"),
            )),
            "line_total": parse_amount(breakdown.get("line_total")),
        }

    def to_row(self, default_image: str = "") -> CartRow:
        return CartRow(
            row_id=resolve_row_id(self.cart_item_id, self.product_id, self.variant_signature),
            cart_item_id=self.cart_item_id,
            product_id=self.product_id,
            product_name=self.product_name,
            product_image=self.product_image or default_image,
            variant_signature=self.variant_signature,
            selected_size=self.selected_size,
            selected_attributes=self.selected_attributes,
            selected_attributes_human=self.selected_attributes_human,
            selection_description=describe_selection(
                self.selected_size, self.selected_attributes_human
            ),
            base_price=self.base_price,
            attributes_price_delta=self.attributes_price_delta,
            unit_price=self.unit_price,
            line_total=self.line_total,
            quantity=self.quantity,
        )


class DeliveryInfo(BaseModel):
    """Delivery details entered at checkout"""
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    street_address: str = Field("", validation_alias=AliasChoices("street_address", "address"))
    city: str = ""
    zip_code: str = Field("", validation_alias=AliasChoices("zip_code", "zip"))
    instructions: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class DeliveryPayload(BaseModel):
    """Delivery block of an order as the backend expects it"""
    name: str
    email: str
    phone: str
    company: str
    street_address: str
    city: str
    zip_code: str
    instructions: List[str] = Field(default_factory=list)

    @classmethod
    def from_delivery(cls, delivery: DeliveryInfo) -> "DeliveryPayload":
        note = delivery.instructions.strip()
        return cls(
            name=delivery.name,
            email=delivery.email,
            phone=delivery.phone,
            company=delivery.company,
            street_address=delivery.street_address,
            city=delivery.city,
            zip_code=delivery.zip_code,
            instructions=[note] if note else [],
        )


class ItemLine(BaseModel):
    """One submitted order line"""
    product_id: str
    quantity: int = Field(..., ge=1)
    unit_price: Decimal
    total_price: Decimal
    selected_size: str = ""
    selected_attributes: Dict[str, str] = Field(default_factory=dict)
    selected_attributes_human: List[HumanAttribute] = Field(default_factory=list)
    base_price: Decimal = Decimal("0")
    variant_signature: str = ""
    attributes_price_delta: Decimal = Decimal("0")

    @field_serializer("unit_price", "total_price", "base_price", "attributes_price_delta")
    def amount_as_number(self, v: Decimal) -> float:
        return float(v)


class OrderDraft(BaseModel):
    """Submission-ready order built from the live cart"""
    user_name: str
    total_price: Decimal
    status: str = "pending"
    notes: str = ""
    device_uuid: str
    items: List[ItemLine]
    delivery: DeliveryPayload

    @field_serializer("total_price")
    def total_as_text(self, v: Decimal) -> str:
        return f"{v:.2f}"

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class Totals(BaseModel):
    """Cart totals, always derived from the rows"""
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


# API request/response models

class AddItemRequest(BaseModel):
    """Request model for adding an item to the cart"""
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    selected_size: str = ""
    selected_attributes: Dict[str, str] = Field(default_factory=dict)


class QuantityChangeRequest(BaseModel):
    """Request model for a relative quantity change"""
    delta: int = Field(..., description="Positive to increment, negative to decrement")


class PriceOverrideRequest(BaseModel):
    """Request model for overriding a row's unit price"""
    unit_price: Decimal = Field(..., ge=0)


class CartView(BaseModel):
    """Response model for the current cart"""
    device_uuid: str
    rows: List[CartRow] = Field(default_factory=list)
    totals: Totals
    error: Optional[str] = None


class OrderReceipt(BaseModel):
    """Response model for a placed order"""
    order_id: Optional[str] = None
    draft: OrderDraft
    summary: str = ""
    cleanup_failures: List[str] = Field(default_factory=list)
