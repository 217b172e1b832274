from __future__ import annotations

from .models import CartLineItem, Product, Variant


class Cart:
    def __init__(self, items: list[CartLineItem] | None = None):
        self.items: list[CartLineItem] = list(items or [])

    def _find(self, product_id: str, variant_id: str | None) -> CartLineItem | None:
        for item in self.items:
            if item.product_id == product_id and item.variant_id == variant_id:
                return item
        return None

    def add(self, product: Product, variant: Variant | None = None, quantity: int = 1) -> CartLineItem:
        if quantity < 1:
            raise ValueError("quantity must be at least 1")

        existing = self._find(product.id, variant.id if variant else None)
        if existing is not None:
            existing.quantity += quantity
            return existing

        item = CartLineItem(
            product_id=product.id,
            branch_id=product.branch_id,
            name=product.name,
            unit_price=variant.price if variant else product.price,
            quantity=quantity,
            variant=variant,
            image_url=(variant.image_url if variant and variant.image_url else product.image_url),
        )
        self.items.append(item)
        return item

    def remove(self, product_id: str, variant_id: str | None = None) -> None:
        self.items = [
            item for item in self.items if not (item.product_id == product_id and item.variant_id == variant_id)
        ]

    def clear(self) -> None:
        self.items = []

    @property
    def total(self) -> float:
        return sum(item.line_total for item in self.items)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def is_empty(self) -> bool:
        return not self.items

    def group_by_branch(self) -> dict[str, list[CartLineItem]]:
        groups: dict[str, list[CartLineItem]] = {}
        for item in self.items:
            groups.setdefault(item.branch_id, []).append(item)
        return groups
