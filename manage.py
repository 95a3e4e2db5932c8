import json

import click
from flask.cli import FlaskGroup
from flask_migrate import Migrate

from eventcerts.app import create_app, db
from eventcerts.shared.certificates import issue_and_render, load_event_layout, verify_certificate
from eventcerts.shared.certificates_layout import layout_to_dict
from eventcerts.shared.errors import CertificateError


migrate = Migrate()


def create_eventcerts_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_eventcerts_app)


@cli.command("gen_cert")
@click.option("--event", "event_id", required=True, type=int)
@click.option("--user", "user_id", required=True)
@click.option("--name", "participant_name", required=True)
@click.option("--title", "event_title", default=None)
@click.option("--date", "completion_date", default=None, help="ISO completion date")
def gen_cert(event_id: int, user_id: str, participant_name: str, event_title, completion_date):
    """Issue (or re-render) a certificate for a participant."""
    try:
        issued = issue_and_render(
            event_id, user_id, participant_name, event_title, completion_date
        )
    except (CertificateError, ValueError) as exc:
        click.echo(f"Failed: {exc}", err=True)
        raise SystemExit(1)
    click.echo(issued.record.certificate_number)
    click.echo(issued.record.pdf_url)
    click.echo(issued.record.png_url)


@cli.command("verify_cert")
@click.argument("certificate_number")
def verify_cert(certificate_number: str):
    fields = verify_certificate(certificate_number)
    if fields is None:
        click.echo("Not found", err=True)
        raise SystemExit(1)
    click.echo(json.dumps(fields, indent=2))


@cli.command("show_layout")
@click.option("--event", "event_id", required=True, type=int)
def show_layout(event_id: int):
    """Print the event's layout with defaults filled in."""
    click.echo(json.dumps(layout_to_dict(load_event_layout(event_id)), indent=2))


if __name__ == "__main__":
    cli()
