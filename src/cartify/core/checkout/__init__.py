from .branches import filter_payment_configs, resolve_branch_contexts
from .cart import Cart
from .coupons import CouponBook, normalize_code
from .errors import (
    OrderRejectedError,
    PaymentConfigMismatchError,
    PaymentRequiredError,
    SettlementError,
    SettlementWriteError,
    SuspendedBranchError,
    TransactionIdRequiredError,
    ValidationError,
)
from .models import (
    AppliedCoupon,
    BranchQuote,
    BranchSettlementContext,
    Buyer,
    CartLineItem,
    CouponResult,
    OrderLine,
    OrderSubmission,
    PaymentConfig,
    PaymentDetails,
    PaymentSelection,
    PriceBreakdown,
    Product,
    RegistryEntry,
    Seller,
    SettlementResult,
    ShippingInfo,
    Variant,
)
from .payments import PaymentSelector, SelectionState, is_cash_on_delivery, validate_payment
from .pricing import compute_branch_pricing

__all__ = [
    "AppliedCoupon",
    "BranchQuote",
    "BranchSettlementContext",
    "Buyer",
    "Cart",
    "CartLineItem",
    "CouponBook",
    "CouponResult",
    "OrderLine",
    "OrderRejectedError",
    "OrderSubmission",
    "PaymentConfig",
    "PaymentConfigMismatchError",
    "PaymentDetails",
    "PaymentRequiredError",
    "PaymentSelection",
    "PaymentSelector",
    "PriceBreakdown",
    "Product",
    "RegistryEntry",
    "SelectionState",
    "Seller",
    "SettlementError",
    "SettlementResult",
    "SettlementWriteError",
    "ShippingInfo",
    "SuspendedBranchError",
    "TransactionIdRequiredError",
    "ValidationError",
    "Variant",
    "compute_branch_pricing",
    "filter_payment_configs",
    "is_cash_on_delivery",
    "normalize_code",
    "resolve_branch_contexts",
    "validate_payment",
]
