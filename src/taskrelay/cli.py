from __future__ import annotations

from typing import Optional

import typer
import uvicorn
from dotenv import load_dotenv

from taskrelay.core.c32 import C32Error, convert_address

app = typer.Typer(add_completion=False)

def _load_env() -> None:
    load_dotenv()

def _setup_logging() -> None:
    """Configure centralized logging to both stdout and log files."""
    from taskrelay.core.config import Settings
    from taskrelay.core.logging_config import setup_logging

    settings = Settings.from_env()
    setup_logging(log_dir=settings.log_dir, log_level=settings.log_level, clear_on_launch=settings.clear_logs_on_launch)

@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (default: TASKRELAY_HOST or 127.0.0.1)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default: TASKRELAY_PORT or 3402)"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Run the relay: pollers, push channel and control endpoints."""
    _load_env()
    _setup_logging()

    from taskrelay.core.config import Settings

    settings = Settings.from_env()
    uvicorn.run(
        "taskrelay.core.gateway:create_app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        factory=True,
    )

@app.command()
def version() -> None:
    from taskrelay import __version__

    typer.echo(__version__)

@app.command()
def wallets(
    wallets_dir: Optional[str] = typer.Option(None, "--dir", help="Wallet directory (default: TASKRELAY_WALLETS_DIR or ./wallets)"),
) -> None:
    """List local wallet files with their testnet and mainnet addresses."""
    _load_env()

    from taskrelay.core.config import Settings
    from taskrelay.core.wallets import read_wallets

    directory = wallets_dir or Settings.from_env().wallets_dir
    found = read_wallets(directory)
    if not found:
        typer.echo(f"No wallets found in {directory}")
        raise typer.Exit()
    for wallet in found:
        typer.echo(f"{wallet.filename}  {wallet.label or '-'}")
        typer.echo(f"   testnet: {wallet.testnet_address}")
        typer.echo(f"   mainnet: {wallet.mainnet_address}")

@app.command("convert-address")
def convert_address_cmd(
    address: str = typer.Argument(..., help="Stacks address to re-encode"),
    network: str = typer.Option("testnet", help="Target network: testnet or mainnet"),
) -> None:
    """Re-encode an address for the other network."""
    try:
        typer.echo(convert_address(address, network))
    except C32Error as exc:
        typer.secho(f"Invalid address: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

if __name__ == "__main__":
    app()
