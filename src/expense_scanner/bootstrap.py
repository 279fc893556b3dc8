from __future__ import annotations

from sqlalchemy import select

from expense_scanner.core.config import settings
from expense_scanner.core.db import SessionLocal, create_schema
from expense_scanner.core.logging import get_logger, log_event
from expense_scanner.core.security import hash_password
from expense_scanner.modules.identity.models import User
from expense_scanner.modules.taxonomy.models import Category, Tag
from expense_scanner.modules.taxonomy.service import COMMON_CATEGORIES

logger = get_logger(__name__)


def bootstrap() -> None:
    if settings.environment == "dev" and str(settings.database_url).startswith("sqlite"):
        create_schema()

    if not settings.init_admin_email or not settings.init_admin_password:
        return

    # Support comma-separated list of admin emails
    admin_emails = [
        e.strip().lower() for e in settings.init_admin_email.split(",") if e.strip()
    ]
    if not admin_emails:
        return

    with SessionLocal() as session:
        for email in admin_emails:
            existing = session.scalar(select(User).where(User.email == email))
            if existing:
                continue
            admin = User(
                email=email,
                full_name="Admin",
                password_hash=hash_password(settings.init_admin_password),
                is_active=True,
            )
            session.add(admin)
            session.flush()
            # Seed a starter taxonomy so the first scan has something to map onto.
            for name in COMMON_CATEGORIES:
                session.add(Category(user_id=admin.id, name=name))
            session.add(Tag(user_id=admin.id, name="receipt"))
            log_event(logger, "bootstrap.admin.created", email=email)
        session.commit()
