"""Create the first admin account if the database has none.

Usage: ``create-admin [--name NAME] [--email EMAIL] [--password PASSWORD]``
Defaults come from ADMIN_NAME / ADMIN_EMAIL / ADMIN_PASSWORD.
"""
import asyncio
import logging

import click

from accounts import ensure_admin
from database import Store
from settings import settings

logger = logging.getLogger("create_admin")


async def run(name: str, email: str, password: str) -> bool:
    store = Store.from_settings(settings)
    try:
        await store.ensure_indexes()
        admin, created = await ensure_admin(store, name, email, password)
    finally:
        store.close()
    if created:
        logger.info("Admin user created: %s <%s>", admin["name"], admin["email"])
    return created


@click.command()
@click.option("--name", default=settings.ADMIN_NAME, show_default=True, help="Admin display name")
@click.option("--email", default=settings.ADMIN_EMAIL, show_default=True, help="Admin login email")
@click.option("--password", default=settings.ADMIN_PASSWORD, help="Admin password")
def main(name, email, password):
    """Create the first admin user."""
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    if asyncio.run(run(name, email, password)):
        click.echo(f"PASS Created admin {email}")
    else:
        click.echo("Admin user already exists")


if __name__ == "__main__":
    main()
