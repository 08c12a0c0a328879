from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Iterator, List, Optional

import typer

from fxrates.config import load_config
from fxrates.rates.models import Provenance
from fxrates.services import RateServices, build_services
from fxrates.utils.errors import FxRatesError, NotFoundError
from fxrates.utils.validation import validate_currency_pair


app = typer.Typer(add_completion=False, help="Exchange rate cache CLI")

ConfigOption = typer.Option(None, "--config", "-c", help="Path to config.yaml (default: $FXRATES_CONFIG or ./config.yaml)")


@contextmanager
def _services(config_path: Optional[str]) -> Iterator[RateServices]:
    services = build_services(load_config(config_path))
    services.database.create_tables()
    try:
        yield services
    finally:
        services.close()


def _fail(error: Exception) -> None:
    typer.secho(str(error), fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.command("init-db")
def init_db(config: Optional[str] = ConfigOption):
    """Create the exchange_rates table."""
    with _services(config):
        typer.echo("Database tables created/verified")


@app.command("resolve")
def resolve(
    pair: str = typer.Argument(..., help="Currency pair, e.g. USD/EUR"),
    date: Optional[str] = typer.Option(None, "--date", "-d", help="As-of date (YYYY-MM-DD)"),
    config: Optional[str] = ConfigOption,
):
    """Resolve the rate for a pair."""
    try:
        from_currency, to_currency = validate_currency_pair(pair)
        with _services(config) as services:
            result = services.resolver.resolve(from_currency, to_currency, date)
    except FxRatesError as e:
        _fail(e)

    if result.provenance == Provenance.NOT_FOUND:
        _fail(NotFoundError(f"Exchange rate not found for {from_currency} to {to_currency}"))

    color = typer.colors.YELLOW if result.provenance == Provenance.STALE else typer.colors.GREEN
    typer.secho(f"{from_currency}/{to_currency} = {result.rate} ({result.provenance.value})", fg=color)


@app.command("convert")
def convert(
    amount: str = typer.Argument(..., help="Amount to convert"),
    from_currency: str = typer.Argument(..., metavar="FROM"),
    to_currency: str = typer.Argument(..., metavar="TO"),
    date: Optional[str] = typer.Option(None, "--date", "-d", help="As-of date (YYYY-MM-DD)"),
    config: Optional[str] = ConfigOption,
):
    """Convert an amount between two currencies."""
    try:
        with _services(config) as services:
            result = services.converter.convert(amount, from_currency, to_currency, date)
    except FxRatesError as e:
        _fail(e)

    typer.echo(
        f"{result.amount} {result.from_currency} = {result.converted_amount} {result.to_currency} "
        f"(rate {result.rate}, {result.provenance.value})"
    )


@app.command("set-manual")
def set_manual(
    pair: str = typer.Argument(..., help="Currency pair, e.g. USD/UAH"),
    rate: str = typer.Argument(..., help="Rate: 1 FROM = RATE TO"),
    config: Optional[str] = ConfigOption,
):
    """Store a permanent manual override for a pair."""
    try:
        from_currency, to_currency = validate_currency_pair(pair)
        with _services(config) as services:
            record = services.store.set_manual(from_currency, to_currency, rate)
    except FxRatesError as e:
        _fail(e)
    typer.secho(f"Manual rate set: {record}", fg=typer.colors.GREEN)


@app.command("refresh")
def refresh(
    currencies: Optional[List[str]] = typer.Option(
        None, "--currency", "-x", help="Currency to refresh (repeat option); defaults to active currencies"
    ),
    config: Optional[str] = ConfigOption,
):
    """Refresh every pair of active currencies and sweep expired rates."""
    with _services(config) as services:
        summary = services.scheduler.refresh_active_pairs(currencies or None)
    typer.echo(json.dumps(summary.to_dict(), indent=2))
    if summary.pairs_failed:
        typer.secho(f"{summary.pairs_failed} pair(s) failed", fg=typer.colors.YELLOW)


@app.command("sweep")
def sweep(config: Optional[str] = ConfigOption):
    """Mark expired live rates as stale."""
    with _services(config) as services:
        count = services.store.sweep_expired()
    typer.echo(f"Marked {count} rate(s) stale")


@app.command("clear-live")
def clear_live(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    config: Optional[str] = ConfigOption,
):
    """Delete every cached live rate, keeping manual overrides."""
    if not yes and not typer.confirm("Delete all cached live rates?", default=False):
        raise typer.Abort()
    with _services(config) as services:
        count = services.store.clear_live_rates()
    typer.echo(f"Deleted {count} live rate(s)")


if __name__ == "__main__":
    app()
