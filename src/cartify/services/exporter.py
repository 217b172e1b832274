from __future__ import annotations

from pathlib import Path

import pandas as pd

from cartify.core.db import MarketplaceRepository

ORDER_COLUMNS = [
    "id",
    "created_at",
    "status",
    "buyer_id",
    "branch_id",
    "subtotal_amount",
    "discount_amount",
    "coupon_code",
    "shipping_cost",
    "tax_rate",
    "tax_amount",
    "final_amount",
    "payment_method",
    "transaction_id",
    "shipping_full_name",
    "shipping_city",
    "shipping_phone",
]


def _orders_frame(repository: MarketplaceRepository) -> pd.DataFrame:
    orders = pd.DataFrame(repository.list_orders(), columns=ORDER_COLUMNS)
    return orders.rename(columns={"id": "order_id"})


def export_orders(repository: MarketplaceRepository, formats: list[str], out_dir: Path) -> list[Path]:
    """Write one row per order and one row per order item, as CSV files and/or a two-sheet workbook."""
    out_dir.mkdir(parents=True, exist_ok=True)
    orders = _orders_frame(repository)
    items = pd.DataFrame(repository.fetch_export_rows())

    created_files: list[Path] = []
    if "csv" in formats:
        for name, frame in (("cartify_orders.csv", orders), ("cartify_order_items.csv", items)):
            csv_path = (out_dir / name).resolve()
            frame.to_csv(csv_path, index=False, encoding="utf-8-sig")
            created_files.append(csv_path)

    if "xlsx" in formats:
        xlsx_path = (out_dir / "cartify_orders.xlsx").resolve()
        with pd.ExcelWriter(xlsx_path, engine="openpyxl") as writer:
            orders.to_excel(writer, index=False, sheet_name="orders")
            items.to_excel(writer, index=False, sheet_name="order_items")
        created_files.append(xlsx_path)

    return created_files
