"""
Flask CLI commands for store administration.

Commands:
- flask init-db: Create all tables
- flask create-admin: Create a new admin user
- flask seed-products: Load a starter catalog
"""

import click
import re
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError
from betterbeing.database import Base, db_session, get_engine
from betterbeing.models import Product, User


SEED_PRODUCTS = [
    ('Daily Multivitamin', 'Supplements', Decimal('189.00'), 120),
    ('Omega-3 Fish Oil', 'Supplements', Decimal('249.00'), 80),
    ('Magnesium Glycinate', 'Supplements', Decimal('159.00'), 60),
    ('Organic Green Tea', 'Teas', Decimal('89.00'), 200),
    ('Calming Chamomile Blend', 'Teas', Decimal('79.00'), 150),
    ('Plant Protein Vanilla', 'Nutrition', Decimal('429.00'), 40),
]


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        import betterbeing.models  # noqa: F401  registers every table on Base.metadata
        Base.metadata.create_all(get_engine())
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-admin')
    @click.option('--email', prompt=True, help='Admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
    def create_admin(email, password):
        """Create a new admin user."""
        email = email.strip().lower()
        if not re.match(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$', email):
            click.echo(click.style('Invalid email. Use the format user@example.com', fg='red'))
            return

        min_length = app.config.get('MIN_PASSWORD_LENGTH', 8)
        if len(password) < min_length:
            click.echo(click.style(f'Password must be at least {min_length} characters.', fg='red'))
            return

        existing = db_session.query(User).filter_by(email=email).first()
        if existing:
            if existing.is_admin:
                click.echo(click.style(f'{email} is already an admin.', fg='yellow'))
                return
            existing.is_admin = True
            db_session.commit()
            click.echo(click.style(f'Promoted {email} to admin (ID {existing.id}).', fg='green'))
            return

        try:
            admin = User(email=email, is_admin=True)
            admin.set_password(password)
            db_session.add(admin)
            db_session.commit()
            click.echo(click.style(f'Admin created: {email} (ID {admin.id})', fg='green', bold=True))
        except SQLAlchemyError as e:
            db_session.rollback()
            click.echo(click.style(f'Error creating admin: {e}', fg='red'))

    @app.cli.command('seed-products')
    def seed_products():
        """Insert the starter catalog, skipping names that already exist."""
        created = 0
        for name, category, price, stock in SEED_PRODUCTS:
            if db_session.query(Product).filter_by(name=name).first():
                continue
            db_session.add(Product(
                name=name, category=category, price=price, stock_count=stock, in_stock=True
            ))
            created += 1
        db_session.commit()
        click.echo(f'Seeded {created} products.')
