"""CLI commands for the stamp-duty webhook receiver."""

import json
import sys
import time

import click
import requests

from stampduty_sdk import EventType, WebhookSender, build_headers, generate_secret
from stampduty_sdk.sender import new_message_id
from stampduty_api.settings import get_settings


@click.group()
def cli():
    """Stamp-duty webhook receiver CLI."""
    pass


@cli.command("generate-secret")
def generate_secret_command():
    """Print a new whsec_ webhook secret."""
    click.echo(generate_secret())


@cli.command()
@click.argument("body_file", type=click.File("rb"))
@click.option("--secret", envvar="WEBHOOK_SECRET", required=True, help="Workspace secret (whsec_...).")
@click.option("--id", "msg_id", default=None, help="Delivery id (default: random msg_...).")
@click.option("--timestamp", type=int, default=None, help="Unix timestamp (default: now).")
def sign(body_file, secret, msg_id, timestamp):
    """Print webhook-* headers for the raw bytes in BODY_FILE."""
    raw_body = body_file.read()
    headers = build_headers(
        secret,
        msg_id or new_message_id(),
        int(time.time()) if timestamp is None else timestamp,
        raw_body,
    )
    for name, value in headers.items():
        click.echo(f"{name}: {value}")


@cli.command("send-test")
@click.argument("url")
@click.option("--secret", envvar="WEBHOOK_SECRET", required=True, help="Workspace secret (whsec_...).")
@click.option(
    "--event-type",
    default=EventType.ORDER_DELIVERED.value,
    show_default=True,
    help="Event type to send; unknown types are allowed.",
)
@click.option("--data", "data_json", default='{"order_id": "test_order"}', show_default=True, help="JSON object for the data field.")
def send_test(url, secret, event_type, data_json):
    """Send one signed test delivery to URL."""
    try:
        data = json.loads(data_json)
    except ValueError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--data")
    if not isinstance(data, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--data")

    sender = WebhookSender(secret)
    try:
        result = sender.send(url, event_type, data)
    except requests.RequestException as e:
        click.echo(f"✗ Delivery failed: {e}", err=True)
        sys.exit(1)

    if result.ok:
        click.echo(f"✓ {result.msg_id} accepted with HTTP {result.status_code} in {result.elapsed:.2f}s")
    else:
        click.echo(f"✗ {result.msg_id} rejected with HTTP {result.status_code}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--host", default=None, help="Bind host (default: API_HOST).")
@click.option("--port", type=int, default=None, help="Bind port (default: API_PORT).")
def serve(host, port):
    """Run the receiver with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "stampduty_api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
