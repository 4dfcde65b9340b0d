import typer

from banking_gateway.database import SessionLocal, init_db
from banking_gateway.ratelimit import RateLimiterRegistry, load_rate_limit_config
from banking_gateway.seed import seed_sample_data

app = typer.Typer(help="Banking AI Gateway management CLI")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Interface to bind"),
    port: int = typer.Option(8000, help="Port to listen on"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """
    Run the API server.
    """
    import uvicorn

    uvicorn.run("banking_gateway.main:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_database():
    """
    Create all database tables.
    """
    init_db()
    typer.echo("Database tables created.")


@app.command()
def seed():
    """
    Load sample customers, accounts and transactions.
    """
    init_db()
    db = SessionLocal()
    try:
        if seed_sample_data(db):
            typer.echo("Sample data loaded.")
        else:
            typer.echo("Data already exists, skipping seed.")
    finally:
        db.close()


@app.command("ratelimit-status")
def ratelimit_status():
    """
    Show the configured per-service rate limits.
    """
    try:
        config = load_rate_limit_config()
    except ValueError as e:
        typer.echo(f"Invalid rate limit configuration: {e}")
        raise typer.Exit(code=1)

    registry = RateLimiterRegistry.from_config(config)

    typer.echo(f"Rate Limiting: {'ENABLED' if config.enabled else 'DISABLED'}")
    typer.echo(f"Refill Policy: {config.refill_policy}")
    typer.echo("")
    typer.echo(f"{'Service':<22} | {'Limit/min':<10} | {'Available'}")
    typer.echo("-" * 50)
    for service, status in registry.status().items():
        typer.echo(f"{service:<22} | {status['capacity']:<10} | {status['available_tokens']}")


if __name__ == "__main__":
    app()
