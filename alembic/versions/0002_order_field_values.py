"""order field values
Revision ID: 0002_order_field_values
Revises: 0001_init
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_order_field_values"
down_revision = "0001_init"
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "order_field_values",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("meta_key", sa.String(length=120), nullable=False),
        sa.Column("field_id", sa.String(length=100), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("label", sa.String(length=200), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False, server_default="text"),
        sa.Column("config", sa.JSON(), nullable=True),
        sa.UniqueConstraint("order_id", "meta_key", name="uq_order_field_values_order_key"),
    )
    op.create_index("ix_order_field_values_order_id", "order_field_values", ["order_id"])
    op.create_index("ix_order_field_values_field_id", "order_field_values", ["field_id"])

def downgrade():
    op.drop_index("ix_order_field_values_field_id", table_name="order_field_values")
    op.drop_index("ix_order_field_values_order_id", table_name="order_field_values")
    op.drop_table("order_field_values")
