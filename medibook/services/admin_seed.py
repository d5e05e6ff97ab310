from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..core.security import UserRole, get_password_hash, normalize_email, verify_password
from ..models.user import User

logger = logging.getLogger(__name__)

def ensure_admin(
    db: Session,
    email: Optional[str],
    password: Optional[str],
    username: str = "System Admin",
) -> Optional[User]:
    """Make sure exactly the configured admin account exists.

    Admins are never created through registration; this runs once at startup
    and is safe to repeat. An existing account with the configured email is
    promoted to admin, re-activated, and has its password reset when it no
    longer matches the configured one.
    """
    email = normalize_email(email or "")
    if not email or not password:
        logger.info("[ADMIN] ADMIN_EMAIL / ADMIN_PASSWORD not set. Skipping admin seed.")
        return None

    _retire_other_admins(db, email)

    existing = db.query(User).filter(User.email == email).first()

    if existing is None:
        admin = User(
            username=username,
            email=email,
            password_hash=get_password_hash(password),
            role=UserRole.ADMIN,
            is_active=True,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        logger.info(f"[ADMIN] Seeded admin user: {email}")
        return admin

    changed = False

    if existing.role != UserRole.ADMIN:
        existing.role = UserRole.ADMIN
        changed = True

    if not existing.is_active:
        existing.is_active = True
        changed = True

    if not verify_password(password, existing.password_hash):
        existing.password_hash = get_password_hash(password)
        changed = True
        logger.info(f"[ADMIN] Reset admin password from configuration for: {email}")

    if changed:
        db.commit()
        db.refresh(existing)
        logger.info(f"[ADMIN] Admin ensured/updated: {email}")
    else:
        logger.info(f"[ADMIN] Admin already exists and password matches: {email}")

    return existing

def _retire_other_admins(db: Session, email: str):
    # A previously configured admin must not keep working after the email changes
    stale = db.query(User).filter(
        User.role == UserRole.ADMIN,
        User.email != email,
        User.is_active.is_(True)
    ).all()

    for user in stale:
        user.is_active = False
        logger.warning(f"[ADMIN] Deactivated admin no longer in configuration: {user.email}")

    if stale:
        db.commit()
