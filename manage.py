"""
manage.py — CLI admin commands for Trip Planner.

There is no self-registration; accounts are created here.

Usage:
    python manage.py create-user
    python manage.py create-user --email traveller@example.com --name "Sam"
    python manage.py deactivate-user --email traveller@example.com
"""

import click

from auth import hash_password
from database import SessionLocal, engine
from models import User, db


@click.group()
def cli():
    """Trip Planner admin commands."""


@cli.command('create-user')
@click.option('--email',    prompt=True,  help='Login email address')
@click.option('--name',     prompt=True,  help='Display name')
@click.option('--password', prompt=True,  hide_input=True, confirmation_prompt=True,
              help='Login password (hidden)')
def create_user(email: str, name: str, password: str):
    """Create a new active account."""
    email = email.strip().lower()
    name  = name.strip()

    db.metadata.create_all(engine)
    with SessionLocal() as session:
        existing = session.query(User).filter_by(email=email).first()
        if existing:
            click.echo(f'✗ An account with email {email!r} already exists (id={existing.id}).', err=True)
            raise SystemExit(1)

        user = User(
            email         = email,
            display_name  = name,
            password_hash = hash_password(password),
            is_active     = True,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        click.echo(f'✓ Created account for {email!r} (id={user.id})')


@cli.command('deactivate-user')
@click.option('--email', prompt=True, help='Login email address')
def deactivate_user(email: str):
    """Disable an account; its trips are kept."""
    email = email.strip().lower()
    with SessionLocal() as session:
        user = session.query(User).filter_by(email=email).first()
        if not user:
            click.echo(f'✗ No account with email {email!r}.', err=True)
            raise SystemExit(1)
        user.is_active = False
        session.commit()
        click.echo(f'✓ Deactivated {email!r} (id={user.id})')


if __name__ == '__main__':
    cli()
