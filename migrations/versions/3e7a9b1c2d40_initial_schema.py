"""initial schema: operators, audit trail, customers, companies, transmissions

Revision ID: 3e7a9b1c2d40
Revises:
Create Date: 2026-10-17 09:12:41.208113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3e7a9b1c2d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Create all tables (idempotent: existing tables are left alone)."""
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(64), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(128), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
            sa.Column(
                "permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
            ),
        )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("birth_date", sa.Date(), nullable=False),
            sa.Column("gender", sa.String(16), nullable=False),
            sa.Column("phone", sa.String(64), nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("address", sa.Text(), nullable=False),
            sa.Column("postal_code", sa.String(32), nullable=False),
            sa.Column("occupation", sa.Text(), nullable=False),
            sa.Column("income", sa.Numeric(14, 2), nullable=False, server_default="0"),
            sa.Column("created_by", sa.String(320), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_customers_created_at", "customers", ["created_at"])
        op.create_index("idx_customers_name", "customers", ["name"])

    if "insurance_info" not in existing_tables:
        op.create_table(
            "insurance_info",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("current_insurance", JSONType, nullable=True),
            sa.Column("desired_insurance", JSONType, nullable=False),
            sa.Column("coverage_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
            sa.Column("coverage_period", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_insurance_info_customer_id", "insurance_info", ["customer_id"])

    if "insurance_companies" not in existing_tables:
        op.create_table(
            "insurance_companies",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("contact_email", sa.String(320), nullable=False),
            sa.Column("api_endpoint", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_insurance_companies_is_active", "insurance_companies", ["is_active"])

    if "transmissions" not in existing_tables:
        op.create_table(
            "transmissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
            ),
            sa.Column(
                "company_id",
                sa.Integer(),
                sa.ForeignKey("insurance_companies.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
            sa.Column("transmitted_data", JSONType, nullable=False),
            sa.Column("response_data", JSONType, nullable=True),
            sa.Column("transmitted_by", sa.String(320), nullable=True),
            sa.Column("transmitted_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_transmissions_transmitted_at", "transmissions", ["transmitted_at"])
        op.create_index("idx_transmissions_status", "transmissions", ["status"])
        op.create_index("idx_transmissions_customer_id", "transmissions", ["customer_id"])
        op.create_index("idx_transmissions_company_id", "transmissions", ["company_id"])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("transmissions")
    op.drop_table("insurance_companies")
    op.drop_table("insurance_info")
    op.drop_table("customers")
    op.drop_table("audit_events")
    op.drop_table("role_permissions")
    op.drop_table("user_roles")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users")
