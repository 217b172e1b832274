from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True, frozen=True)
class Variant:
    id: str
    color: str
    size: str
    price: float
    stock: int = 0
    image_url: str | None = None

    @property
    def label(self) -> str:
        return f"{self.color} / {self.size}"


@dataclass(slots=True, frozen=True)
class Product:
    id: str
    branch_id: str
    name: str
    price: float
    stock: int = 0
    image_url: str | None = None
    variants: tuple[Variant, ...] = ()

    def variant(self, variant_id: str) -> Variant | None:
        return next((v for v in self.variants if v.id == variant_id), None)


@dataclass(slots=True)
class CartLineItem:
    product_id: str
    branch_id: str
    name: str
    unit_price: float
    quantity: int = 1
    variant: Variant | None = None
    image_url: str | None = None

    @property
    def variant_id(self) -> str | None:
        return self.variant.id if self.variant else None

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@dataclass(slots=True, frozen=True)
class PaymentConfig:
    provider_id: str
    provider_name: str
    enabled: bool = True
    account_title: str | None = None
    account_number: str | None = None
    instructions: str | None = None


@dataclass(slots=True, frozen=True)
class RegistryEntry:
    """A payment method approved for a country (e.g. "Easypaisa" in pakistan)."""

    name: str
    enabled: bool = True
    type: str = "manual"
    instructions: str | None = None


@dataclass(slots=True, frozen=True)
class Seller:
    branch_id: str
    name: str
    country: str | None = None
    delivery_fee: float = 0.0
    tax_rate: float = 0.0
    suspension_until: datetime | None = None
    suspension_reason: str | None = None
    payment_configs: tuple[PaymentConfig, ...] = ()


@dataclass(slots=True, frozen=True)
class BranchSettlementContext:
    branch_id: str
    name: str
    delivery_fee: float = 0.0
    tax_rate: float = 0.0
    is_suspended: bool = False
    suspension_until: datetime | None = None
    suspension_reason: str | None = None
    configs: tuple[PaymentConfig, ...] = ()
    country: str | None = None
    country_defaulted: bool = False

    def find_config(self, provider_id: str) -> PaymentConfig | None:
        return next((c for c in self.configs if c.provider_id == provider_id), None)


@dataclass(slots=True, frozen=True)
class CouponResult:
    is_valid: bool
    discount: float
    message: str


@dataclass(slots=True, frozen=True)
class AppliedCoupon:
    code: str
    discount: float = 0.0
    applied: bool = False


@dataclass(slots=True)
class PaymentSelection:
    provider_id: str | None = None
    transaction_id: str | None = None


@dataclass(slots=True, frozen=True)
class ShippingInfo:
    full_name: str
    address: str
    city: str
    zip: str
    phone: str

    REQUIRED_FIELDS = ("full_name", "address", "city", "zip", "phone")

    def missing_fields(self) -> list[str]:
        return [name for name in self.REQUIRED_FIELDS if not (getattr(self, name) or "").strip()]


@dataclass(slots=True, frozen=True)
class Buyer:
    user_id: str
    name: str | None = None
    country: str | None = None


@dataclass(slots=True, frozen=True)
class PriceBreakdown:
    subtotal: float
    discount: float
    shipping: float
    taxable_amount: float
    tax_rate: float
    tax_amount: float
    final_amount: float


@dataclass(slots=True, frozen=True)
class OrderLine:
    product_id: str
    quantity: int
    name: str
    unit_price: float
    variant_id: str | None = None
    variant_name: str | None = None


@dataclass(slots=True, frozen=True)
class PaymentDetails:
    account_title: str | None = None
    account_number: str | None = None
    instructions: str | None = None
    transaction_id: str | None = None


@dataclass(slots=True, frozen=True)
class OrderSubmission:
    buyer_id: str
    branch_id: str
    lines: tuple[OrderLine, ...]
    pricing: PriceBreakdown
    shipping: ShippingInfo
    payment_method: str
    payment_details: PaymentDetails
    coupon_code: str | None = None

    @property
    def total_amount(self) -> float:
        return self.pricing.final_amount


@dataclass(slots=True)
class BranchQuote:
    branch_id: str
    context: BranchSettlementContext
    items: list[CartLineItem]
    pricing: PriceBreakdown


@dataclass(slots=True)
class SettlementResult:
    order_ids: dict[str, str] = field(default_factory=dict)
    grand_total: float = 0.0
