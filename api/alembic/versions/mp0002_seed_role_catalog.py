"""seed_role_catalog

Revision ID: mp0002
Revises: mp0001
Create Date: 2026-09-28 00:10:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "mp0002"
down_revision: Union[str, None] = "mp0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLE_CODES = ("vendor", "market_manager", "accountant", "inspector", "super_admin")


def upgrade() -> None:
    roles_table = sa.table(
        "roles",
        sa.column("name", sa.String),
        sa.column("display_name", sa.String),
        sa.column("is_elevated", sa.Boolean),
        sa.column("is_active", sa.Boolean)
    )
    op.bulk_insert(
        roles_table,
        [
            {"name": "vendor", "display_name": "Vendor",
                "is_elevated": False, "is_active": True},
            {"name": "market_manager", "display_name": "Market Manager",
                "is_elevated": True, "is_active": True},
            {"name": "accountant", "display_name": "Accountant",
                "is_elevated": True, "is_active": True},
            {"name": "inspector", "display_name": "Inspector",
                "is_elevated": True, "is_active": True},
            {"name": "super_admin", "display_name": "Super Admin",
                "is_elevated": True, "is_active": True}
        ]
    )


def downgrade() -> None:
    roles_table = sa.table("roles", sa.column("name", sa.String))
    op.execute(roles_table.delete().where(roles_table.c.name.in_(ROLE_CODES)))
