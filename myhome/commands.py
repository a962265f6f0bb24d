import click
from flask.cli import with_appcontext

from myhome.auth.credentials import hash_password, password_problems
from myhome.auth.roles import Role
from myhome.extensions import db
from myhome.models.user_models import User, UserProfile


@click.command('init-db')
@click.option('--admin-email', help='Email of the first administrator to create.')
@click.option('--admin-password', help='Password for the first administrator.')
@click.option('--admin-name', default='System Administrator', show_default=True)
@with_appcontext
def init_db_command(admin_email, admin_password, admin_name):
    """Create all tables and optionally seed the first administrator."""
    db.create_all()
    click.echo("Database tables created.")

    if not admin_email:
        return
    if not admin_password:
        raise click.UsageError('--admin-password is required with --admin-email')

    problems = password_problems(admin_password)
    if problems:
        raise click.BadParameter('; '.join(problems), param_hint='--admin-password')

    if User.find_by_email(admin_email):
        click.echo(f"User {User.normalize_email(admin_email)} already exists, skipping.")
        return

    admin = User(
        email=User.normalize_email(admin_email),
        password_hash=hash_password(admin_password),
        name=admin_name,
        role=Role.ADMIN.value,
        is_active=True,
        email_verified=True,
    )
    admin.profile = UserProfile()
    db.session.add(admin)
    db.session.commit()
    click.echo(f"Administrator {admin.email} created.")


def register_commands(app):
    app.cli.add_command(init_db_command)
