# storefront/cli.py
import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import ApiError
from .model import User
from .services import auth_service, product_service


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
@with_appcontext
def create_admin(email, password, name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        raise click.ClickException("Email already exists")
    if len(password) < auth_service.MIN_PASSWORD_LENGTH:
        raise click.ClickException(f"Password must be at least {auth_service.MIN_PASSWORD_LENGTH} chars")
    u = User(email=email, name=name, password_hash=auth_service.hash_password(password), role="admin",
             is_verified=True)
    db.session.add(u)
    db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")


@click.command("export-products")
@click.argument("path", type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_products(path):
    """Write every product to an .xlsx file."""
    product_service.export_workbook(path)
    click.echo(f"Products have been exported to Excel at {path}")


@click.command("import-products")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_products(path):
    """Create products from an .xlsx file laid out like the export."""
    try:
        created = product_service.import_workbook(path)
    except ApiError as e:
        raise click.ClickException(e.message)
    click.echo(f"{created} products have been imported successfully from {path}")


def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(export_products)
    app.cli.add_command(import_products)
