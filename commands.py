import json

import click
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from models import FileRecord, Institution, User, db
from validators import DOMAIN_PATTERN

DEFAULT_INSTITUTIONS = [
    {'name': 'Qis College Of Engineering And Technology', 'domain': 'qiscet.edu.in'},
    {'name': 'Gayatri Vidya Parishad College for Degree & P.G. Courses', 'domain': 'gvp.ac.in'},
]


def load_seed_file(path):
    with open(path) as fh:
        entries = json.load(fh)
    for entry in entries:
        domain = entry.get('domain', '').strip().lower()
        if not entry.get('name') or not DOMAIN_PATTERN.match(domain):
            raise click.BadParameter(f'invalid institution entry: {entry!r}', param_hint='--file')
    return entries


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables."""
    db.create_all()
    click.echo('Database tables created.')


@click.command('seed-institutions')
@click.option('--file', 'seed_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON list of {"name", "domain"} objects.')
@click.option('--keep-existing', is_flag=True, help='Add to the table instead of replacing it.')
@with_appcontext
def seed_institutions_command(seed_file, keep_existing):
    """Seed the institutions table."""
    entries = load_seed_file(seed_file) if seed_file else DEFAULT_INSTITUTIONS

    if not keep_existing:
        if User.query.first() is not None or FileRecord.query.first() is not None:
            raise click.ClickException('Institutions are referenced by accounts or files; '
                                       'rerun with --keep-existing')
        Institution.query.delete()
        click.echo('Cleared existing institutions')

    created = []
    for entry in entries:
        name = entry['name'].strip()
        domain = entry['domain'].strip().lower()
        if keep_existing and Institution.query.filter(
                (Institution.name == name) | (Institution.domain == domain)).first():
            click.echo(f'Skipping {name} (@{domain}): already present')
            continue
        institution = Institution(name=name, domain=domain)
        db.session.add(institution)
        created.append(institution)
    db.session.commit()

    click.echo(f'Seeded {len(created)} institutions')
    for index, institution in enumerate(created, start=1):
        click.echo(f'{index}. {institution.name} (@{institution.domain})')


@click.command('update-institution-domain')
@click.argument('name')
@click.argument('domain')
@with_appcontext
def update_institution_domain_command(name, domain):
    """Point the institution called NAME at a new email DOMAIN."""
    domain = domain.strip().lower()
    if not DOMAIN_PATTERN.match(domain):
        raise click.BadParameter(f'{domain} is not a valid domain', param_hint='DOMAIN')

    institution = Institution.query.filter_by(name=name).first()
    if institution is None:
        raise click.ClickException(f'Institution not found: {name}')
    institution.domain = domain
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise click.ClickException(f'Domain already in use: {domain}')
    click.echo(f'Updated {institution.name} - {institution.domain}')


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_institutions_command)
    app.cli.add_command(update_institution_domain_command)
