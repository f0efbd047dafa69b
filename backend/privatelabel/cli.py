# Overview: Flask CLI command groups for scheduled jobs, outbox dispatch, and bootstrap data.

# backend/privatelabel/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to privatelabel (PowerShell: $env:FLASK_APP="privatelabel").
# - Use: python -m flask <group> <command> [options]
#
# Scheduled jobs:
# - python -m flask jobs daily [--date 2026-03-01]
#   Run both daily sweeps once (for system cron), then drain the outbox.
# - python -m flask jobs promote [--date ...]
#   Auto-promote waiting orders whose production start date has arrived.
# - python -m flask jobs reminders [--date ...]
#   Send 7-day delivery reminders.
# - python -m flask jobs scheduler
#   Long-running process that fires the daily run at DAILY_JOBS_HOUR:DAILY_JOBS_MINUTE UTC.
#
# Outbox (notifications / recurring orders):
# - python -m flask outbox drain
#   Dispatch every due task once.
# - python -m flask outbox worker --poll-interval 5
#   Long-running dispatcher (OUTBOX_DISPATCH_MODE=worker).
# - python -m flask outbox list --status failed
#   Inspect queued tasks.
# - python -m flask outbox retry 42
#   Re-queue a task that exhausted its attempts.
#
# Bootstrap data:
# - python -m flask catalog seed
#   Upsert the default product registry (BIOMAX, Rosin).
# - python -m flask catalog list
# - python -m flask directory add-store --name "Green Leaf" --city Portland --state OR
# - python -m flask directory add-rep --name "Jamie" --email jamie@example.com
# - python -m flask directory add-admin --name "Ops" --email ops@example.com
# - python -m flask directory list

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Admin, OutboxTask, Rep, Store
from .services import catalog_service, daily_jobs, outbox_service
from .time_utils import parse_iso_date, utcnow


def _parse_date_option(value):
    if value is None:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        raise click.BadParameter("expected YYYY-MM-DD")


# =============================================================================
# jobs
# =============================================================================


@click.group('jobs')
def jobs_group():
    """Daily production sweeps."""


@jobs_group.command('daily')
@click.option('--date', 'run_date', help='Treat this date (YYYY-MM-DD) as today')
@with_appcontext
def daily_cli(run_date):
    """Run auto-promotion and 7-day reminders once."""
    result = daily_jobs.run_daily_jobs(today=_parse_date_option(run_date))
    click.echo(f"PASS Promoted {result['promoted']} order(s), sent {result['reminders_sent']} reminder(s)")
    if result["outbox"] is not None:
        click.echo(f"PASS Outbox: {result['outbox']['processed']} processed, {result['outbox']['failed']} failed")


@jobs_group.command('promote')
@click.option('--date', 'run_date', help='Treat this date (YYYY-MM-DD) as today')
@with_appcontext
def promote_cli(run_date):
    """Auto-promote due waiting orders into stage_1."""
    count = daily_jobs.auto_promote_orders(today=_parse_date_option(run_date))
    click.echo(f"PASS Promoted {count} order(s) to production")


@jobs_group.command('reminders')
@click.option('--date', 'run_date', help='Treat this date (YYYY-MM-DD) as today')
@with_appcontext
def reminders_cli(run_date):
    """Send 7-day delivery reminders."""
    count = daily_jobs.send_seven_day_reminders(today=_parse_date_option(run_date))
    click.echo(f"PASS Sent {count} reminder(s)")


@jobs_group.command('scheduler')
@with_appcontext
def scheduler_cli():
    """Run the daily jobs forever at the configured time."""
    daily_jobs.run_scheduler()


# =============================================================================
# outbox
# =============================================================================


@click.group('outbox')
def outbox_group():
    """Deferred side-effect dispatch."""


@outbox_group.command('drain')
@with_appcontext
def drain_cli():
    """Dispatch every due outbox task."""
    stats = outbox_service.drain_outbox()
    click.echo(f"PASS {stats['processed']} processed, {stats['failed']} failed, {stats['skipped']} skipped")


@outbox_group.command('worker')
@click.option('--poll-interval', type=float, default=5.0, show_default=True)
@with_appcontext
def worker_cli(poll_interval):
    """Poll and dispatch outbox tasks until interrupted."""
    outbox_service.OutboxDispatcher().run_forever(poll_interval=poll_interval)


@outbox_group.command('list')
@click.option('--status', type=click.Choice(['pending', 'processing', 'done', 'failed']), help='Filter by status')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_outbox_cli(status, limit):
    """List recent outbox tasks."""
    query = db.session.query(OutboxTask)
    if status:
        query = query.filter_by(status=status)
    tasks = query.order_by(OutboxTask.id.desc()).limit(limit).all()

    if not tasks:
        click.echo("No tasks found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<6} {'Kind':<26} {'Status':<11} {'Tries':<6} {'Payload':<25} {'Error'}")
    click.echo("=" * 100)
    for task in tasks:
        error = (task.last_error or "-")[:40]
        click.echo(
            f"{task.id:<6} {task.kind:<26} {task.status:<11} {task.attempts:<6} "
            f"{json.dumps(task.payload)[:25]:<25} {error}"
        )
    click.echo("=" * 100 + "\n")


@outbox_group.command('retry')
@click.argument('task_id', type=int)
@with_appcontext
def retry_outbox_cli(task_id):
    """Reset a failed task so the next dispatch picks it up."""
    task = db.session.get(OutboxTask, task_id)
    if task is None:
        raise click.ClickException(f"Task {task_id} not found")
    if task.status != "failed":
        raise click.ClickException(f"Task {task_id} is {task.status}, not failed")
    task.status = "pending"
    task.attempts = 0
    task.available_at = utcnow()
    db.session.commit()
    click.echo(f"PASS Task {task_id} re-queued")


# =============================================================================
# catalog
# =============================================================================


@click.group('catalog')
def catalog_group():
    """Private-label product registry."""


@catalog_group.command('seed')
@with_appcontext
def seed_catalog_cli():
    """Upsert the default products."""
    for product in catalog_service.seed_products():
        click.echo(f"PASS {product.name}: ${product.unit_price}")


@catalog_group.command('list')
@with_appcontext
def list_catalog_cli():
    for product in catalog_service.list_products()["products"]:
        state = "active" if product["is_active"] else "inactive"
        click.echo(f"{product['id']:<5} {product['name']:<20} ${product['unit_price']:<10} {state}")


# =============================================================================
# directory
# =============================================================================


@click.group('directory')
def directory_group():
    """Stores, reps and admins referenced by the workflow."""


@directory_group.command('add-store')
@click.option('--name', required=True)
@click.option('--address')
@click.option('--city')
@click.option('--state')
@click.option('--zip', 'zip_code')
@with_appcontext
def add_store_cli(name, address, city, state, zip_code):
    store = Store(name=name.strip(), address=address, city=city, state=state, zip=zip_code)
    db.session.add(store)
    db.session.commit()
    click.echo(f"PASS Created store {store.name} (ID: {store.id})")


@directory_group.command('add-rep')
@click.option('--name', required=True)
@click.option('--email', required=True)
@with_appcontext
def add_rep_cli(name, email):
    rep = Rep(name=name.strip(), email=email.strip().lower())
    db.session.add(rep)
    db.session.commit()
    click.echo(f"PASS Created rep {rep.name} (ID: {rep.id})")


@directory_group.command('add-admin')
@click.option('--name', required=True)
@click.option('--email', required=True)
@with_appcontext
def add_admin_cli(name, email):
    admin = Admin(name=name.strip(), email=email.strip().lower())
    db.session.add(admin)
    db.session.commit()
    click.echo(f"PASS Created admin {admin.name} (ID: {admin.id})")


@directory_group.command('list')
@with_appcontext
def list_directory_cli():
    click.echo("Stores:")
    for store in db.session.query(Store).order_by(Store.name):
        click.echo(f"  {store.id:<5} {store.name}")
    click.echo("Reps:")
    for rep in db.session.query(Rep).order_by(Rep.name):
        click.echo(f"  {rep.id:<5} {rep.name:<25} {rep.email or '-'}")
    click.echo("Admins:")
    for admin in db.session.query(Admin).order_by(Admin.name):
        click.echo(f"  {admin.id:<5} {admin.name:<25} {admin.email}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(jobs_group)
    app.cli.add_command(outbox_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(directory_group)
