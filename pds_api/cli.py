"""PDS operator CLI tool (pdsctl)."""

import typer

app = typer.Typer(name="pdsctl", help="Payroll and display service CLI")
db_app = typer.Typer(help="Database management commands")
tokens_app = typer.Typer(help="Token ledger maintenance")
app.add_typer(db_app, name="db")
app.add_typer(tokens_app, name="tokens")


@db_app.command("init")
def db_init():
    """Create all tables that don't exist yet."""
    import pds_api.models  # noqa: F401
    from pds_api.db.base import Base
    from pds_api.db.session import engine

    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables created")


@db_app.command("seed")
def db_seed():
    """Seed roles, reference data, the admin account and display defaults."""
    from pds_api.core.config import settings
    from pds_api.db.session import SessionLocal
    from pds_api.db.seeds.seed_roles import seed_roles
    from pds_api.db.seeds.seed_reference_data import seed_reference_data
    from pds_api.db.seeds.seed_admin import seed_admin
    from pds_api.services.display_settings_service import DisplaySettingsService

    db = SessionLocal()
    try:
        typer.echo(f"✅ Seeded {seed_roles(db)} roles")
        typer.echo(f"✅ Seeded {seed_reference_data(db)} departments and agent types")
        if seed_admin(db):
            typer.echo(f"✅ Created admin: {settings.ADMIN_EMAIL}")
        else:
            typer.echo(f"ℹ️  Admin '{settings.ADMIN_EMAIL}' already exists, skipping.")
        added = DisplaySettingsService().initialize_defaults(db)
        typer.echo(f"✅ Seeded {added} display settings")
    finally:
        db.close()


@tokens_app.command("cleanup")
def tokens_cleanup():
    """Delete expired tokens once, outside the beat schedule."""
    from pds_api.db.session import SessionLocal
    from pds_api.services.token_service import TokenLedger

    db = SessionLocal()
    try:
        deleted = TokenLedger().cleanup_expired(db)
    finally:
        db.close()
    typer.echo(f"✅ Deleted {deleted} expired tokens")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("pds_api.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
