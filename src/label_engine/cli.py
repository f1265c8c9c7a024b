"""Typer CLI for Label-Engine."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="label", help="Label-Engine: beat licensing and event ticketing backend")
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the Label-Engine API server."""
    import uvicorn
    from label_engine.app import create_app

    console.print(f"[bold green]Starting Label-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


async def _seed() -> list:
    from label_engine.common.config import get_settings
    from label_engine.deps import get_db
    from label_engine.licensing.templates import seed_templates

    settings = get_settings()
    db = get_db()
    await db.init()
    await db.create_all()
    try:
        async with db.get_session() as session:
            created = await seed_templates(session, producer_name=settings.producer_name)
            return [(t.tier, t.template_id, t.version) for t in created]
    finally:
        await db.close()


@app.command("seed-templates")
def seed_templates_cmd():
    """Insert the default Basic/Premium/Unlimited license templates."""
    created = asyncio.run(_seed())
    if not created:
        console.print("[yellow]All default templates already present[/yellow]")
        return
    for tier, template_id, version in created:
        console.print(f"[bold green]Created[/bold green] {tier} ({template_id}, v{version})")


async def _verify(identifier: str):
    from label_engine.deps import get_db, get_licensing_service

    db = get_db()
    await db.init()
    try:
        async with db.get_session() as session:
            return await get_licensing_service().verify_license(session, identifier)
    finally:
        await db.close()


@app.command("verify-license")
def verify_license(
    identifier: str = typer.Argument(..., help="License id or license number"),
):
    """Verify a license against the database, including its document hash."""
    result = asyncio.run(_verify(identifier))

    if result.license is not None:
        lic = result.license
        table = Table(show_header=False)
        table.add_row("Number", lic.license_number)
        table.add_row("Tier", lic.tier)
        table.add_row("Beat", lic.beat_title)
        table.add_row("Status", lic.status)
        table.add_row("Issued", str(lic.issued_at))
        console.print(table)

    if result.valid:
        console.print(f"[bold green]VALID[/bold green]: {result.message}")
    else:
        console.print(f"[bold red]INVALID[/bold red]: {result.message}")
        raise typer.Exit(1)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Label-Engine server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
