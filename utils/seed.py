import logging

from models import db
from models.user import Role, User
from security.password import hash_password

logger = logging.getLogger(__name__)

# COMPANY_ADMIN manages one tenant, SUPER_ADMIN operates the platform
DEFAULT_ROLES = ["COMPANY_ADMIN", "SUPER_ADMIN"]


def seed_roles():
    existing = {r.name for r in Role.query.all()}
    missing = [name for name in DEFAULT_ROLES if name not in existing]
    for name in missing:
        db.session.add(Role(name=name))
    db.session.commit()
    if missing:
        logger.info("Seeded roles: %s", ", ".join(missing))


def ensure_super_admin(email, password):
    """Create the platform operator account on first boot (SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD)."""
    email = (email or "").strip().lower()
    if not email or not password:
        return None
    user = User.query.filter_by(email=email).first()
    if user:
        return user

    role = Role.query.filter_by(name="SUPER_ADMIN").first()
    user = User(email=email, password_hash=hash_password(password), roles=[role])
    db.session.add(user)
    db.session.commit()
    logger.info("Bootstrap super admin %s created", email)
    return user
