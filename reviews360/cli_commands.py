"""
Flask CLI commands for operators.

Commands:
- flask init-db: Create all tables
- flask create-superadmin: Bootstrap a platform super admin
- flask purge-expired-invitations: Delete long-expired, never-used invitations
"""

import click

from reviews360.database import create_all, db_session, transaction
from reviews360.exceptions import ReviewsError


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create the database schema."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-superadmin')
    @click.option('--email', prompt=True, help='Super admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Super admin password')
    @click.option('--first-name', default=None, help='First name')
    @click.option('--last-name', default=None, help='Last name')
    def create_superadmin(email, password, first_name, last_name):
        """Create a super admin (no organization)."""
        from reviews360.services.account_service import create_super_admin

        try:
            principal = create_super_admin(db_session, email, password, first_name, last_name)
        except ReviewsError as e:
            raise click.ClickException(e.message)

        click.echo(click.style('Super admin created.', fg='green', bold=True))
        click.echo(f'   Email: {principal.email}')
        click.echo(f'   ID: {principal.id}')

    @app.cli.command('purge-expired-invitations')
    @click.option('--older-than-days', default=30, show_default=True, type=int,
                  help='Only purge invitations expired for at least this many days')
    def purge_expired_invitations(older_than_days):
        """Delete expired invitations that were never used."""
        from reviews360.services.invitation_service import purge_expired

        with transaction(db_session):
            deleted = purge_expired(db_session, older_than_days=older_than_days)
        click.echo(f'Purged {deleted} expired invitation(s).')
