"""Farm planning schema.

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def _farm_fk() -> sa.Column:
    return sa.Column("farm_id", sa.Integer(), sa.ForeignKey("farms.id", ondelete="CASCADE"), nullable=False)


def upgrade() -> None:
    role_name = sa.Enum("admin", "manager", "viewer", name="role_name")
    monthly_data_type = sa.Enum("per_unit", "accounting", name="monthly_data_type")
    role_name.create(op.get_bind(), checkfirst=True)
    monthly_data_type.create(op.get_bind(), checkfirst=True)
    role_col = postgresql.ENUM("admin", "manager", "viewer", name="role_name", create_type=False)
    type_col = postgresql.ENUM("per_unit", "accounting", name="monthly_data_type", create_type=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("role", role_col, nullable=False, server_default="viewer"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "farms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        _created_at(),
    )
    op.create_index("ix_farms_id", "farms", ["id"])

    op.create_table(
        "user_farm_roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        _farm_fk(),
        sa.Column("role", role_col, nullable=False, server_default="viewer"),
        _created_at(),
        sa.UniqueConstraint("user_id", "farm_id", name="uq_user_farm_roles_user_farm"),
    )
    op.create_index("ix_user_farm_roles_id", "user_farm_roles", ["id"])

    op.create_table(
        "assumptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        _farm_fk(),
        sa.Column("fiscal_year", sa.Integer(), nullable=False),
        sa.Column("start_month", sa.String(length=3), nullable=False, server_default="Nov"),
        sa.Column("total_acres", sa.Float(), nullable=False, server_default="0"),
        sa.Column("crops_json", sa.JSON(), nullable=False),
        sa.Column("bins_json", sa.JSON(), nullable=False),
        sa.Column("is_frozen", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("frozen_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("farm_id", "fiscal_year", name="uq_assumptions_farm_year"),
    )
    op.create_index("ix_assumptions_id", "assumptions", ["id"])
    op.create_index("ix_assumptions_farm_id", "assumptions", ["farm_id"])

    op.create_table(
        "farm_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        _farm_fk(),
        sa.Column("code", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column(
            "parent_id",
            sa.Integer(),
            sa.ForeignKey("farm_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("path", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category_type", sa.String(length=50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.UniqueConstraint("farm_id", "code", name="uq_farm_categories_farm_code"),
    )
    op.create_index("ix_farm_categories_id", "farm_categories", ["id"])
    op.create_index("ix_farm_categories_farm_id", "farm_categories", ["farm_id"])

    op.create_table(
        "gl_accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        _farm_fk(),
        sa.Column("account_number", sa.String(length=255), nullable=False),
        sa.Column("account_name", sa.String(length=255), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("farm_categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.UniqueConstraint("farm_id", "account_number", name="uq_gl_accounts_farm_number"),
    )
    op.create_index("ix_gl_accounts_id", "gl_accounts", ["id"])
    op.create_index("ix_gl_accounts_farm_id", "gl_accounts", ["farm_id"])

    op.create_table(
        "gl_actual_details",
        sa.Column("id", sa.Integer(), primary_key=True),
        _farm_fk(),
        sa.Column(
            "gl_account_id",
            sa.Integer(),
            sa.ForeignKey("gl_accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("fiscal_year", sa.Integer(), nullable=False),
        sa.Column("month", sa.String(length=3), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        _created_at(),
        sa.UniqueConstraint(
            "gl_account_id",
            "fiscal_year",
            "month",
            name="uq_gl_actual_details_account_year_month",
        ),
    )
    op.create_index("ix_gl_actual_details_id", "gl_actual_details", ["id"])
    op.create_index("ix_gl_actual_details_farm_id", "gl_actual_details", ["farm_id"])

    for table, constraint in (
        ("monthly_data", "uq_monthly_data_farm_year_month_type"),
        ("monthly_data_frozen", "uq_monthly_data_frozen_farm_year_month_type"),
    ):
        extra = (
            [
                sa.Column("comments_json", sa.JSON(), nullable=False),
                sa.Column("is_actual", sa.Boolean(), nullable=False, server_default=sa.text("false")),
                sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            ]
            if table == "monthly_data"
            else [sa.Column("frozen_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())]
        )
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            _farm_fk(),
            sa.Column("fiscal_year", sa.Integer(), nullable=False),
            sa.Column("month", sa.String(length=3), nullable=False),
            sa.Column("type", type_col, nullable=False),
            sa.Column("data_json", sa.JSON(), nullable=False),
            *extra,
            sa.UniqueConstraint("farm_id", "fiscal_year", "month", "type", name=constraint),
        )
        op.create_index(f"ix_{table}_id", table, ["id"])
        op.create_index(f"ix_{table}_farm_id", table, ["farm_id"])

    op.create_table(
        "inventory_locations",
        sa.Column("id", sa.Integer(), primary_key=True),
        _farm_fk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("location_type", sa.String(length=50), nullable=False, server_default="production"),
        sa.Column("region", sa.String(length=255), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.UniqueConstraint("farm_id", "name", name="uq_inventory_locations_farm_name"),
    )
    op.create_index("ix_inventory_locations_id", "inventory_locations", ["id"])
    op.create_index("ix_inventory_locations_farm_id", "inventory_locations", ["farm_id"])

    op.create_table(
        "inventory_bins",
        sa.Column("id", sa.Integer(), primary_key=True),
        _farm_fk(),
        sa.Column(
            "location_id",
            sa.Integer(),
            sa.ForeignKey("inventory_locations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("bin_number", sa.String(length=100), nullable=False),
        sa.Column("bin_type", sa.String(length=100), nullable=True),
        sa.Column("size_bu", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("farm_id", "location_id", "bin_number", name="uq_inventory_bins_farm_location_number"),
    )
    op.create_index("ix_inventory_bins_id", "inventory_bins", ["id"])
    op.create_index("ix_inventory_bins_farm_id", "inventory_bins", ["farm_id"])

    op.create_table(
        "inventory_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        _farm_fk(),
        sa.Column(
            "bin_id",
            sa.Integer(),
            sa.ForeignKey("inventory_bins.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("commodity", sa.String(length=255), nullable=True),
        sa.Column("bushels", sa.Float(), nullable=False, server_default="0"),
        sa.Column("kg", sa.Float(), nullable=False, server_default="0"),
        sa.Column("crop_year", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("farm_id", "bin_id", "snapshot_date", name="uq_inventory_snapshots_farm_bin_date"),
    )
    op.create_index("ix_inventory_snapshots_id", "inventory_snapshots", ["id"])
    op.create_index("ix_inventory_snapshots_farm_id", "inventory_snapshots", ["farm_id"])
    op.create_index("ix_inventory_snapshots_snapshot_date", "inventory_snapshots", ["snapshot_date"])

    op.create_table(
        "commodity_conversions",
        sa.Column("id", sa.Integer(), primary_key=True),
        _farm_fk(),
        sa.Column("commodity", sa.String(length=100), nullable=False),
        sa.Column("lbs_per_bu", sa.Float(), nullable=False),
        sa.UniqueConstraint("farm_id", "commodity", name="uq_commodity_conversions_farm_commodity"),
    )
    op.create_index("ix_commodity_conversions_id", "commodity_conversions", ["id"])
    op.create_index("ix_commodity_conversions_farm_id", "commodity_conversions", ["farm_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("farm_id", sa.Integer(), sa.ForeignKey("farms.id", ondelete="CASCADE"), nullable=True),
        sa.Column("fiscal_year", sa.Integer(), nullable=True),
        sa.Column(
            "actor_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=100), nullable=False),
        sa.Column("before_state", sa.JSON(), nullable=True),
        sa.Column("after_state", sa.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])
    op.create_index("ix_audit_logs_farm_id", "audit_logs", ["farm_id"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "commodity_conversions",
        "inventory_snapshots",
        "inventory_bins",
        "inventory_locations",
        "monthly_data_frozen",
        "monthly_data",
        "gl_actual_details",
        "gl_accounts",
        "farm_categories",
        "assumptions",
        "user_farm_roles",
        "farms",
        "users",
    ):
        op.drop_table(table)
    sa.Enum(name="monthly_data_type").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="role_name").drop(op.get_bind(), checkfirst=True)
