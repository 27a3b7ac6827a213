"""
cli.py
------
Operator CLI for onboarding client applications.

    slime-talks init-db
    slime-talks create-tenant --name "Acme" --domain acme.io \\
        --allowed-subdomain app --allowed-ip 10.0.0.0/8
    slime-talks revoke-tenant pk_...

The API token is printed once by create-tenant and never stored in clear.
"""

import asyncio
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from slime_talks.core.exceptions import SlimeTalksError
from slime_talks.core.logging import configure_logging
from slime_talks.db.session import AsyncSessionLocal, engine, init_models
from slime_talks.services.tenant_service import TenantService

app = typer.Typer(
    name="slime-talks",
    help="Slime Talks administration commands",
    add_completion=False,
)
console = Console()


async def _init_db() -> None:
    try:
        await init_models(engine)
    finally:
        await engine.dispose()


async def _create_tenant(
    name: str, domain: str, allowed_ips: List[str], allowed_subdomains: List[str]
):
    try:
        async with AsyncSessionLocal() as session:
            tenant, token = await TenantService(session).create_tenant(
                name, domain, allowed_ips=allowed_ips, allowed_subdomains=allowed_subdomains
            )
            await session.commit()
            return tenant, token
    finally:
        await engine.dispose()


async def _revoke_tenant(public_key: str):
    try:
        async with AsyncSessionLocal() as session:
            tenant = await TenantService(session).revoke(public_key)
            await session.commit()
            return tenant
    finally:
        await engine.dispose()


@app.callback()
def main() -> None:
    configure_logging(stream=sys.stderr)


@app.command("init-db")
def init_db() -> None:
    """Create every table and index (idempotent)."""
    asyncio.run(_init_db())
    console.print("[green]✓ Database tables created[/green]")


@app.command("create-tenant")
def create_tenant(
    name: str = typer.Option(..., "--name", "-n", help="Client application name"),
    domain: str = typer.Option(..., "--domain", "-d", help="Registered domain, e.g. acme.io"),
    allowed_ip: Optional[List[str]] = typer.Option(
        None, "--allowed-ip", help="Allowed IP or CIDR (repeatable)"
    ),
    allowed_subdomain: Optional[List[str]] = typer.Option(
        None, "--allowed-subdomain", help="Allowed subdomain of --domain (repeatable)"
    ),
) -> None:
    """Register a client application and print its credentials."""
    try:
        tenant, token = asyncio.run(
            _create_tenant(name, domain, allowed_ip or [], allowed_subdomain or [])
        )
    except SlimeTalksError as exc:
        console.print(f"[red]✗ {exc.message}[/red]")
        raise typer.Exit(1)

    table = Table(title="Client created", show_header=True, header_style="bold cyan")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_row("Client id", tenant.uuid)
    table.add_row("Name", tenant.name)
    table.add_row("Domain", tenant.domain)
    table.add_row("Public key", tenant.public_key)
    table.add_row("API token", token)
    if tenant.token_expires_at is not None:
        table.add_row("Token expires", tenant.token_expires_at.isoformat())
    console.print(table)
    console.print("[yellow]⚠ Store the API token now; it cannot be shown again.[/yellow]")


@app.command("revoke-tenant")
def revoke_tenant(
    public_key: str = typer.Argument(..., help="Public key of the client to revoke"),
) -> None:
    """Revoke a client's credentials. Revoked clients can no longer authenticate."""
    try:
        tenant = asyncio.run(_revoke_tenant(public_key))
    except SlimeTalksError as exc:
        console.print(f"[red]✗ {exc.message}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Client '{tenant.name}' revoked[/green]")


if __name__ == "__main__":
    app()
