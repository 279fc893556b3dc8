"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

# Import User first - taxonomy rows reference it
from expense_scanner.modules.identity.models import User  # noqa: F401

from expense_scanner.modules.taxonomy.models import Category, Tag  # noqa: F401
