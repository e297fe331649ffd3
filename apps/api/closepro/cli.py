"""CLI tools for ClosePro administration."""

from datetime import datetime, timedelta, timezone

import click
from sqlalchemy.exc import IntegrityError

from closepro.db.enums import PlanTier, Role, SubscriptionStatus
from closepro.db.models import User
from closepro.db.session import SessionLocal
from closepro.services import org_service, plan_catalog, subscription_service, usage_service


@click.group()
def cli():
    """ClosePro CLI tools."""
    pass


@cli.command()
@click.option("--name", required=True, help="Organization name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, no spaces)")
@click.option("--admin-email", required=True, help="Admin email address")
@click.option("--admin-name", default="Admin", help="Admin display name")
@click.option(
    "--plan",
    type=click.Choice([tier.value for tier in PlanTier]),
    default=PlanTier.STARTER.value,
    help="Plan tier used for the seat cap",
)
def create_org(name: str, slug: str, admin_email: str, admin_name: str, plan: str):
    """
    Create an organization and its first admin.

    The organization has no subscription yet; metered actions stay blocked
    until one is granted (see grant-subscription).

    Example:
        python -m closepro.cli create-org --name "Acme Sales" --slug "acme" --admin-email "admin@acme.com"
    """
    slug = slug.lower().strip()
    if not slug.replace("-", "").replace("_", "").isalnum():
        raise click.BadParameter(
            "Slug must be alphanumeric (with optional hyphens/underscores)",
            param_hint="--slug",
        )

    db = SessionLocal()
    try:
        if org_service.get_org_by_slug(db, slug):
            raise click.ClickException(f"Organization with slug '{slug}' already exists")
        if db.query(User).filter(User.email == admin_email.lower()).first():
            raise click.ClickException(f"User already exists: {admin_email}")

        org = org_service.create_org(db, name=name, slug=slug, plan_tier=plan)
        org_service.add_member(
            db, org.id, email=admin_email, display_name=admin_name, role=Role.ADMIN
        )

        click.echo(f"✓ Created organization: {name}")
        click.echo(f"  ID: {org.id}")
        click.echo(f"  Slug: {slug}")
        click.echo(f"  Seats: {org.max_seats}")
        click.echo(f"✓ Added {admin_email.lower()} with role: admin")
    except IntegrityError as e:
        db.rollback()
        raise click.ClickException(f"Could not create organization: {e.orig}")
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
@click.option(
    "--plan",
    type=click.Choice([tier.value for tier in PlanTier]),
    required=True,
    help="Plan tier",
)
@click.option("--seats", type=int, default=None, help="Seat count (default: plan's max seats)")
@click.option("--calls", type=int, default=None, help="Calls per month override (-1 = unlimited)")
@click.option("--roleplay", type=int, default=None, help="Roleplay sessions per month override (-1 = unlimited)")
@click.option(
    "--status",
    type=click.Choice(SubscriptionStatus.entitled()),
    default=SubscriptionStatus.ACTIVE.value,
    help="Subscription status",
)
@click.option("--days", type=int, default=None, help="Period length in days (default: open-ended)")
def grant_subscription(
    org_slug: str,
    plan: str,
    seats: int | None,
    calls: int | None,
    roleplay: int | None,
    status: str,
    days: int | None,
):
    """
    Grant a subscription without going through the billing provider.

    Used for manual deals, trials, and support fixes.

    Example:
        python -m closepro.cli grant-subscription --org-slug "acme" --plan pro --days 30
    """
    db = SessionLocal()
    try:
        org = org_service.get_org_by_slug(db, org_slug)
        if not org:
            raise click.ClickException(f"Organization not found: {org_slug}")

        period_end = None
        if days is not None:
            period_end = datetime.now(timezone.utc) + timedelta(days=days)

        subscription = subscription_service.create_subscription(
            db,
            org.id,
            plan_tier=plan,
            status=status,
            seats=seats,
            calls_per_month=calls,
            roleplay_sessions_per_month=roleplay,
            current_period_end=period_end,
        )
        db.commit()

        limits = subscription_service.effective_limits(subscription)
        click.echo(f"✓ Granted {plan} subscription to {org.name}")
        click.echo(f"  Status: {subscription.status}")
        click.echo(f"  Seats: {limits.seats}")
        click.echo(f"  Calls/month: {_format_limit(limits.calls_per_month)}")
        click.echo(f"  Roleplay/month: {_format_limit(limits.roleplay_sessions_per_month)}")
        if period_end:
            click.echo(f"  Period ends: {period_end.strftime('%Y-%m-%d')}")
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
def show_usage(org_slug: str):
    """
    Show this month's usage against the organization's limits.

    Example:
        python -m closepro.cli show-usage --org-slug "acme"
    """
    db = SessionLocal()
    try:
        org = org_service.get_org_by_slug(db, org_slug)
        if not org:
            raise click.ClickException(f"Organization not found: {org_slug}")

        usage = usage_service.get_current_usage(db, org.id)
        subscription = subscription_service.get_active_subscription(db, org.id)

        click.echo(f"{org.name} ({org.slug}) - {usage.month}")
        if not subscription:
            click.echo("  No active subscription")
            click.echo(f"  Calls: {usage.calls_used}")
            click.echo(f"  Roleplay: {usage.roleplay_sessions_used}")
            return

        limits = subscription_service.effective_limits(subscription)
        click.echo(f"  Plan: {subscription.plan_tier} ({subscription.status})")
        click.echo(f"  Calls: {usage.calls_used} / {_format_limit(limits.calls_per_month)}")
        click.echo(
            f"  Roleplay: {usage.roleplay_sessions_used} / "
            f"{_format_limit(limits.roleplay_sessions_per_month)}"
        )
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        python -m closepro.cli revoke-sessions --email "rep@acme.com"
    """
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()
        if not user:
            raise click.ClickException(f"User not found: {email}")

        old_version = user.token_version
        user.token_version += 1
        db.commit()

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")
    finally:
        db.close()


def _format_limit(limit: int) -> str:
    return "unlimited" if limit == plan_catalog.UNLIMITED else str(limit)


if __name__ == "__main__":
    cli()
