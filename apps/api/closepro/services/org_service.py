"""Organization service - tenant bootstrap and lookups."""

from uuid import UUID

from sqlalchemy.orm import Session

from closepro.db.enums import DEFAULT_PLAN_TIER, PlanTier, Role
from closepro.db.models import Membership, Organization, User
from closepro.services import plan_catalog


def get_org_by_slug(db: Session, slug: str) -> Organization | None:
    """Get organization by slug."""
    return db.query(Organization).filter(Organization.slug == slug.lower()).first()


def create_org(
    db: Session,
    name: str,
    slug: str,
    plan_tier: str | PlanTier = DEFAULT_PLAN_TIER,
) -> Organization:
    """
    Create a new organization with the plan's default seat cap.

    Raises:
        IntegrityError: If slug already exists
    """
    plan = plan_catalog.get_plan(plan_tier)
    org = Organization(
        name=name,
        slug=slug.lower(),
        plan_tier=plan.tier.value,
        max_seats=plan.max_seats,
    )
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


def add_member(
    db: Session,
    org_id: UUID,
    email: str,
    display_name: str,
    role: Role = Role.REP,
) -> Membership:
    """Create a user and attach them to an organization."""
    user = User(email=email.lower(), display_name=display_name)
    db.add(user)
    db.flush()

    membership = Membership(user_id=user.id, organization_id=org_id, role=role.value)
    db.add(membership)
    db.commit()
    db.refresh(membership)
    return membership
