from __future__ import annotations

import json
import subprocess
import sys
import uuid
from pathlib import Path
from typing import Any

import typer
from rich import print

from cartify.config import Settings
from cartify.core.checkout import BranchQuote, CouponBook, SettlementError
from cartify.core.db import MarketplaceRepository
from cartify.core.logging import configure_logging, get_logger
from cartify.services import SettlementService, export_orders, run_doctor_checks
from cartify.services.payloads import CheckoutRequest, load_seed, parse_checkout_request

app = typer.Typer(no_args_is_help=True, help="Cartify CLI: multi-seller checkout settlement")


def _load_settings(base_dir: Path | None = None) -> Settings:
    settings = Settings.load(base_dir=base_dir)
    settings.ensure_directories()
    return settings


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    with path.open("r", encoding="utf-8-sig") as fh:
        return json.load(fh)


def _apply_coupons(service: SettlementService, request: CheckoutRequest, book: CouponBook) -> None:
    for quote in service.quote(request.cart):
        code = request.coupon_inputs.get(quote.branch_id)
        if not code:
            continue
        result = book.apply(quote.branch_id, quote.pricing.subtotal, code)
        if result is None:
            continue
        colour = "green" if result.is_valid else "red"
        print(f"[{colour}]{quote.context.name}[/{colour}]: {result.message} ({code.upper()})")


def _print_quotes(settings: Settings, quotes: list[BranchQuote], grand_total: float) -> None:
    for quote in quotes:
        context = quote.context
        currency = settings.currency(context.country)
        pricing = quote.pricing
        status = " [red](suspended)[/red]" if context.is_suspended else ""
        print(f"[bold]{context.name}[/bold]{status} ({context.branch_id})")
        for item in quote.items:
            variant = f" ({item.variant.label})" if item.variant else ""
            print(f"  {item.quantity}x {item.name}{variant}: {currency}{item.line_total:.2f}")
        print(f"  Subtotal: {currency}{pricing.subtotal:.2f}")
        print(f"  Discount: -{currency}{pricing.discount:.2f}")
        print(f"  Delivery Fee: {'Free' if pricing.shipping == 0 else f'{currency}{pricing.shipping:.2f}'}")
        print(f"  Tax ({pricing.tax_rate:g}%): {currency}{pricing.tax_amount:.2f}")
        print(f"  Total: {currency}{pricing.final_amount:.2f}")
        if context.configs:
            print("  Payment methods: " + ", ".join(f"{c.provider_name} [{c.provider_id}]" for c in context.configs))
        else:
            print("  [yellow]No payment methods enabled by this branch.[/yellow]")
        if context.country_defaulted:
            print(f"  [yellow]Seller has no country set, using {context.country}[/yellow]")
    print(f"[bold]Grand total[/bold]: {grand_total:.2f}")


@app.command("init")
def init_command(
    base_dir: Path | None = typer.Option(None, help="Project root (defaults to the current directory)"),
) -> None:
    settings = _load_settings(base_dir=base_dir)
    with MarketplaceRepository(settings.db_path) as repository:
        executed = repository.migrate()
    print(f"[green]Initialized[/green]. DB: {settings.db_path}")
    print(f"Migrations: {executed if executed else 'none pending'}")


@app.command("seed")
def seed_command(file: Path = typer.Argument(..., help="JSON with sellers, registry, coupons and products")) -> None:
    payload = _read_json(file)
    settings = _load_settings()
    with MarketplaceRepository(settings.db_path) as repository:
        repository.migrate()
        stats = load_seed(repository, payload)

    print("[green]Seed loaded[/green]")
    for key, value in stats.items():
        print(f"- {key}: {value}")


@app.command("quote")
def quote_command(file: Path = typer.Argument(..., help="Checkout request JSON")) -> None:
    payload = _read_json(file)
    correlation_id = uuid.uuid4().hex
    settings = _load_settings()
    configure_logging(settings.logs_dir, correlation_id=correlation_id, level=settings.log_level)
    logger = get_logger("cartify.quote", correlation_id)

    with MarketplaceRepository(settings.db_path) as repository:
        repository.migrate()
        request = parse_checkout_request(repository, payload)
        service = SettlementService(settings=settings, gateway=repository, logger=logger)
        book = CouponBook(repository.validate_coupon)
        try:
            _apply_coupons(service, request, book)
            quotes = service.quote(request.cart, book.snapshot())
        except SettlementError as exc:
            print(f"[red]Quote failed[/red]: {exc.message}")
            raise typer.Exit(1) from exc

    _print_quotes(settings, quotes, service.grand_total(quotes))


@app.command("checkout")
def checkout_command(file: Path = typer.Argument(..., help="Checkout request JSON")) -> None:
    payload = _read_json(file)
    correlation_id = uuid.uuid4().hex
    settings = _load_settings()
    configure_logging(settings.logs_dir, correlation_id=correlation_id, level=settings.log_level)
    logger = get_logger("cartify.checkout", correlation_id)

    with MarketplaceRepository(settings.db_path) as repository:
        repository.migrate()
        request = parse_checkout_request(repository, payload)
        service = SettlementService(settings=settings, gateway=repository, logger=logger)
        book = CouponBook(repository.validate_coupon)
        try:
            _apply_coupons(service, request, book)
            result = service.submit_order(
                buyer=request.buyer,
                cart=request.cart,
                shipping=request.shipping,
                selections=request.selections,
                coupons=book.snapshot(),
                correlation_id=correlation_id,
            )
        except SettlementError as exc:
            print(f"[red]Checkout failed[/red]: {exc.message}")
            for branch_id, order_id in exc.committed.items():
                print(f"- already placed: {branch_id} -> {order_id}")
            raise typer.Exit(1) from exc

    print(f"[green]Order placed successfully![/green] correlation_id={correlation_id}")
    for branch_id, order_id in result.order_ids.items():
        print(f"- {branch_id}: {order_id}")
    print(f"Grand total: {result.grand_total:.2f}")


@app.command("orders")
def orders_command(
    buyer: str | None = typer.Option(None, help="Filter by buyer id"),
    branch: str | None = typer.Option(None, help="Filter by branch id"),
) -> None:
    settings = _load_settings()
    with MarketplaceRepository(settings.db_path) as repository:
        repository.migrate()
        orders = repository.list_orders(buyer_id=buyer, branch_id=branch)

    print(f"Orders: {len(orders)}")
    for order in orders:
        print(
            f"- {order['id'][:8].upper()} {order['branch_id']} {order['status']} "
            f"{order['final_amount']:.2f} via {order['payment_method']}"
        )


@app.command("export")
def export_command(
    format: str = typer.Option("xlsx,csv", help="Comma separated formats: xlsx,csv"),
    out: Path | None = typer.Option(None, help="Export directory"),
) -> None:
    formats = [item.strip().lower() for item in format.split(",") if item.strip()]
    supported = {"xlsx", "csv"}
    unknown = [item for item in formats if item not in supported]
    if unknown:
        raise typer.BadParameter(f"Unsupported formats: {unknown}")

    settings = _load_settings()
    out_dir = (out or settings.exports_dir).resolve()

    with MarketplaceRepository(settings.db_path) as repository:
        repository.migrate()
        files = export_orders(repository=repository, formats=formats, out_dir=out_dir)

    print("[green]Export finished[/green]")
    for file_path in files:
        print(f"- {file_path}")


@app.command("doctor")
def doctor_command() -> None:
    settings = _load_settings()
    checks = run_doctor_checks(settings)

    print("Doctor results:")
    for check in checks:
        status = check["status"].upper()
        print(f"- [{status}] {check['check']}: {check['detail']}")


@app.command("tests")
def tests_command() -> None:
    result = subprocess.run([sys.executable, "-m", "pytest", "-q"], check=False)
    if result.returncode != 0:
        raise typer.Exit(result.returncode)
    print("[green]Tests passed[/green]")


if __name__ == "__main__":
    app()
