"""Mini README: Entry point CLI for the Instant Bazaar authority service.

This script exposes a Typer CLI with two commands: ``run`` starts the
FastAPI service with configurable host, port and production flags, and
``change`` prints how an amount breaks down into coins for the configured
denominations. Settings come from ``BAZAAR_`` environment variables when
available.
"""

from __future__ import annotations

import typer
import uvicorn

from bazaar.configuration import get_settings
from bazaar.currency import CurrencySystem, coin_breakdown, format_currency, make_change
from bazaar.currency.denominations import ROUND_NEAREST
from bazaar.ledger.settings_store import DENOMINATIONS_KEY, JsonFileSettingsStore
from bazaar.logging_utils import configure_root_logger

cli = typer.Typer(help="Launch and inspect the Instant Bazaar authority service.")


@cli.command()
def run(
    host: str = typer.Option(None, help="Host interface to bind."),
    port: int = typer.Option(None, help="Port to listen on."),
    production: bool = typer.Option(
        False, help="Use production server settings (disable auto-reload)."
    ),
) -> None:
    """Start the FastAPI application using uvicorn."""

    settings = get_settings()
    effective_host = host or settings.interface_host
    effective_port = port or settings.interface_port
    configure_root_logger(settings.log_level)

    # Browsers cannot open the 0.0.0.0 bind address, so show a loopback URL instead.
    browser_host = "127.0.0.1" if effective_host in {"0.0.0.0", "::"} else effective_host
    typer.echo(
        "Starting Instant Bazaar on "
        f"{effective_host}:{effective_port}.\n"
        "Peers connect at "
        f"ws://{browser_host}:{effective_port}/ws/<peer id>"
    )
    uvicorn.run(
        "bazaar.interface.web_app:create_application",
        host=effective_host,
        port=effective_port,
        factory=True,
        reload=not production,
    )


@cli.command()
def change(
    amount: str = typer.Argument(..., help="Display amount to break into coins, e.g. 32.8."),
) -> None:
    """Show the coins the configured denominations pay an amount with."""

    settings = get_settings()
    store = JsonFileSettingsStore(settings.world_settings_path)
    currency = CurrencySystem(store.get(DENOMINATIONS_KEY))
    try:
        units = currency.to_base_units(amount, ROUND_NEAREST)
    except ValueError as error:
        raise typer.BadParameter(str(error)) from error

    scaled = currency.scaled_denominations()
    breakdown = coin_breakdown(make_change(units, scaled), scaled)
    typer.echo(f"{format_currency(currency.from_base_units(units))} ({units} base units)")
    for entry in breakdown:
        typer.echo(f"  {entry['count']} x {entry['name']}")
    if not breakdown:
        typer.echo("  nothing to pay")


if __name__ == "__main__":
    cli()
