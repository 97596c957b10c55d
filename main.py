import json

import click
import yaml
import uvicorn

from app.core.logging import get_logger

logger = get_logger(__name__)


def load_seed_file(path):
    """
    Load category trees from a YAML or JSON file.

    The file holds either a list of categories or a mapping with a
    ``categories`` key.
    """
    with open(path, "r") as f:
        if path.endswith(".json"):
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if isinstance(data, dict):
        data = data.get("categories", [])
    if not isinstance(data, list):
        raise click.BadParameter(f"{path} must contain a list of categories")
    return data


@click.group()
def cli():
    """Categories CLI"""
    pass


@cli.command()
@click.option("--host", default="0.0.0.0")
@click.option("--port", default=8000)
@click.option("--workers", default=1)
@click.option("--production", is_flag=True, help="Run in production mode")
def serve(host, port, workers, production):
    """Start the API server"""
    reload = not production  # Auto-reload unless production mode

    uvicorn.run(
        "app.api.web_app:app",
        host=host,
        port=port,
        reload=reload,
        workers=workers if production else 1,
        log_level="info" if production else "debug",
    )


@cli.command("init-db")
def init_db_command():
    """Create the database tables"""
    from app.db.base import init_db

    init_db()
    click.echo("Tables created")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def seed(path):
    """Create categories from a YAML or JSON seed file"""
    from pydantic import ValidationError
    from app.db.base import SessionLocal, init_db
    from app.schemas.category import CategoryCreate
    from app.services.category_service import CategoryService
    from app.services.category_tree import TreeStructureError

    categories = load_seed_file(path)
    init_db()

    db = SessionLocal()
    try:
        service = CategoryService(db)
        created = 0
        for data in categories:
            try:
                category = service.create_category(CategoryCreate(**data))
            except (ValidationError, TreeStructureError) as e:
                logger.error(f"Skipping invalid category '{data.get('name')}': {e}")
                click.echo(f"Error: invalid category '{data.get('name')}': {e}")
                continue
            created += 1
            click.echo(f"  - {category.name} ({category.id})")
        click.echo(f"Seeded {created} of {len(categories)} categories")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
