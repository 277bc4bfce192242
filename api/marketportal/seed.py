"""Seed the role catalog and a bootstrap super admin."""
import os
import sys
from sqlalchemy.orm import Session
from marketportal.core.assignment_status import AssignmentStatus
from marketportal.core.config import settings
from marketportal.core.database import SessionLocal
from marketportal.core.roles import ELEVATED_ROLE_CODES, ROLE_CODE_TO_DISPLAY, LegacyRole, RoleCode
from marketportal.core.security import get_password_hash, verify_password
from marketportal.core.time import note_stamp
from marketportal.models import Market, Role, RoleAssignment, User


def is_production_env() -> bool:
    return settings.ENVIRONMENT.lower() == "production"


def parse_bool_env(value: str | None) -> bool | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y"}:
        return True
    if normalized in {"0", "false", "no", "n"}:
        return False
    return None


def should_seed_demo_data() -> bool:
    override = parse_bool_env(os.getenv("SEED_DEMO_DATA"))
    if override is None:
        return not is_production_env()
    return override


def get_seed_admin_password() -> str | None:
    password = os.getenv("SEED_ADMIN_PASSWORD")
    if password:
        password = password.strip()

    if is_production_env():
        if password:
            if password == "admin123":
                print("FATAL: SEED_ADMIN_PASSWORD cannot be the default in production.", file=sys.stderr)
                sys.exit(1)
            return password
        return None

    return password or "admin123"


def seed_role_catalog(db: Session) -> dict[str, Role]:
    """Insert any missing catalog roles; existing rows are left as they are."""
    roles = {role.name: role for role in db.query(Role).all()}
    for code, display_name in ROLE_CODE_TO_DISPLAY.items():
        if code in roles:
            continue
        role = Role(
            name=code,
            display_name=display_name,
            is_elevated=code in ELEVATED_ROLE_CODES,
            is_active=True,
        )
        db.add(role)
        roles[code] = role
    db.flush()
    return roles


def ensure_user(db: Session, username: str, full_name: str, password: str, email: str | None = None) -> User:
    user = db.query(User).filter(User.username == username).first()
    if user is None:
        user = User(
            username=username,
            email=email,
            full_name=full_name,
            password_hash=get_password_hash(password),
            role=LegacyRole.VENDOR.value,
        )
        db.add(user)
        db.flush()
    return user


def ensure_active_assignment(db: Session, user: User, role: Role, market_id: int | None = None) -> RoleAssignment:
    """Seed an already-approved assignment; bypasses the document workflow on purpose."""
    assignment = db.query(RoleAssignment).filter(
        RoleAssignment.user_id == user.user_id,
        RoleAssignment.role_id == role.role_id
    ).first()
    if assignment is None:
        assignment = RoleAssignment(
            user_id=user.user_id,
            role_id=role.role_id,
            market_id=market_id,
            status=AssignmentStatus.ACTIVE.value,
            admin_notes=f"[Seeded {note_stamp()}]",
        )
        db.add(assignment)
    if role.name != RoleCode.VENDOR.value:
        user.role = LegacyRole.ADMIN.value
    db.flush()
    return assignment


def seed_database():
    """Seed essential data."""
    db = SessionLocal()

    try:
        print("Starting database seeding...")
        roles = seed_role_catalog(db)
        db.commit()
        print(f"✓ Role catalog has {len(roles)} roles")

        admin_password = get_seed_admin_password()
        admin = db.query(User).filter(User.username == "admin").first()
        if admin is None:
            if admin_password is None:
                print("FATAL: SEED_ADMIN_PASSWORD is required to create the admin user in production.", file=sys.stderr)
                sys.exit(1)
            admin = ensure_user(db, "admin", "Admin User", admin_password, email="admin@example.com")
            print("✓ Created admin user (admin)")
        elif is_production_env() and verify_password("admin123", admin.password_hash):
            print("WARNING: admin still uses the default password in production. Rotate immediately.", file=sys.stderr)
        ensure_active_assignment(db, admin, roles[RoleCode.SUPER_ADMIN.value])
        db.commit()

        if should_seed_demo_data():
            market = db.query(Market).filter(Market.name == "Central Market").first()
            if market is None:
                market = Market(name="Central Market")
                db.add(market)
                db.flush()
            manager = ensure_user(db, "manager", "Maria Santos", "manager123", email="manager@example.com")
            ensure_active_assignment(db, manager, roles[RoleCode.MARKET_MANAGER.value])
            if manager not in market.managers:
                market.managers.append(manager)
            vendor = ensure_user(db, "vendor", "Victor Reyes", "vendor123", email="vendor@example.com")
            ensure_active_assignment(db, vendor, roles[RoleCode.VENDOR.value])
            db.commit()
            print("✓ Seeded demo market, manager and vendor")

        print("Seeding complete.")
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
