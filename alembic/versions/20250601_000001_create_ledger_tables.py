"""Create users, products, campaigns, scans, orders and payouts.

Revision ID: 20250601_000001
Revises:
Create Date: 2025-06-01 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20250601_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    role_enum = postgresql.ENUM("distributor", "advertiser", "customer", "retailer", name="roleenum")
    payout_type_enum = postgresql.ENUM("advertiser_commission", "distributor_revenue", name="payouttypeenum")

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("role", role_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )

    op.create_table(
        "products",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("distributor_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("stock_quantity", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("advertiser_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("campaign_name", sa.String(), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("code_identifier", sa.String(), nullable=False),
        sa.Column("commission_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("code_identifier", name="uq_campaign_code_identifier"),
        sa.CheckConstraint(
            "commission_percent >= 0 AND commission_percent <= 100",
            name="ck_campaign_commission_percent",
        ),
    )

    op.create_table(
        "orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("campaign_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("campaigns.id"), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        # Rate snapshot taken from the campaign when the order is created
        sa.Column("commission_percent", sa.Integer(), nullable=True),
        sa.Column("commission_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("shipping_address", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )

    op.create_table(
        "scans",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("campaign_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("campaigns.id"), nullable=False),
        sa.Column("scanned_at", sa.DateTime(), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lon", sa.Float(), nullable=False),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("suburb", sa.String(), nullable=True),
        sa.Column("region", sa.String(), nullable=True),
        sa.Column("weather", sa.JSON(), nullable=True),
        sa.Column("distance_to_store_m", sa.Integer(), nullable=True),
        sa.Column("nearest_poi", sa.String(), nullable=True),
        sa.Column("distance_to_poi_m", sa.Integer(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("device_type", sa.String(), nullable=True),
        sa.Column("referrer", sa.String(), nullable=True),
        sa.Column("scan_source", sa.String(), nullable=True),
        sa.Column("converted_order_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("orders.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_scans_campaign_id", "scans", ["campaign_id"])
    op.create_index("ix_scans_city", "scans", ["city"])

    op.create_table(
        "payouts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()")),
        sa.Column("recipient_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("order_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", payout_type_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("order_id", "type", name="uq_payout_order_type"),
    )
    op.create_index("ix_payouts_recipient_id", "payouts", ["recipient_id"])
    op.create_index("ix_payouts_order_id", "payouts", ["order_id"])


def downgrade():
    op.drop_index("ix_payouts_order_id", table_name="payouts")
    op.drop_index("ix_payouts_recipient_id", table_name="payouts")
    op.drop_table("payouts")
    op.drop_index("ix_scans_city", table_name="scans")
    op.drop_index("ix_scans_campaign_id", table_name="scans")
    op.drop_table("scans")
    op.drop_table("orders")
    op.drop_table("campaigns")
    op.drop_table("products")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS payouttypeenum;")
    op.execute("DROP TYPE IF EXISTS roleenum;")
