from __future__ import annotations

from collections.abc import Callable

from .models import AppliedCoupon, CouponResult

CouponValidator = Callable[[str, str, float], CouponResult]


def normalize_code(code: str) -> str:
    return code.strip().upper()


class CouponBook:
    """
    Coupon state of one checkout session, kept per branch.

    Each branch has its own input string and its own applied coupon; the
    same code typed for two branches is validated twice, independently.
    """

    def __init__(self, validator: CouponValidator):
        self._validator = validator
        self._inputs: dict[str, str] = {}
        self._applied: dict[str, AppliedCoupon] = {}

    def set_input(self, branch_id: str, code: str) -> None:
        self._inputs[branch_id] = code

    def input_for(self, branch_id: str) -> str:
        return self._inputs.get(branch_id, "")

    def apply(self, branch_id: str, subtotal: float, code: str | None = None) -> CouponResult | None:
        if code is not None:
            self.set_input(branch_id, code)
        raw = self.input_for(branch_id)
        if not raw.strip():
            return None

        normalized = normalize_code(raw)
        result = self._validator(normalized, branch_id, subtotal)
        if result.is_valid:
            self._applied[branch_id] = AppliedCoupon(code=normalized, discount=result.discount, applied=True)
        else:
            self._applied[branch_id] = AppliedCoupon(code=normalized, discount=0.0, applied=False)
        return result

    def invalidate(self, branch_id: str) -> None:
        current = self._applied.get(branch_id)
        if current is not None:
            self._applied[branch_id] = AppliedCoupon(code=current.code)

    def get(self, branch_id: str) -> AppliedCoupon | None:
        return self._applied.get(branch_id)

    def discount_for(self, branch_id: str) -> float:
        coupon = self._applied.get(branch_id)
        return coupon.discount if coupon and coupon.applied else 0.0

    def snapshot(self) -> dict[str, AppliedCoupon]:
        return dict(self._applied)
