"""
Flask CLI commands.

Commands:
- flask init-db: Create tables and the default store settings row
- flask create-admin: Create (or update) an admin user
"""

import click
import re
from vitrine.database import get_session, create_all


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables and the store settings row."""
        from vitrine.services.settings_service import get_or_create_settings

        session = get_session()
        try:
            create_all()
            settings = get_or_create_settings(session)
            click.echo(click.style('✅ Banco de dados inicializado.', fg='green', bold=True))
            click.echo(f'   Loja: {settings.store_name}')
        except Exception as e:
            session.rollback()
            click.echo(click.style(f'❌ Erro ao inicializar banco: {str(e)}', fg='red'))
            raise SystemExit(1)

    @app.cli.command('create-admin')
    @click.option('--email', prompt=True, help='Admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
    @click.option('--name', 'full_name', default=None, help='Full name')
    def create_admin(email, password, full_name):
        """Create a user with the admin role, or grant it to an existing one."""
        from vitrine.exceptions import BusinessLogicError
        from vitrine.services.auth_service import create_or_update_admin

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email or ''):
            click.echo(click.style('❌ Email inválido. Use o formato: user@example.com', fg='red'))
            return

        session = get_session()
        try:
            admin = create_or_update_admin(session, email, password, full_name)
        except BusinessLogicError as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            return
        except Exception as e:
            click.echo(click.style(f'❌ {str(e)}', fg='red'))
            return

        click.echo(click.style('\n✅ Administrador pronto!', fg='green', bold=True))
        click.echo(f'   Email: {admin.email}')
        click.echo(f'   ID: {admin.id}')
