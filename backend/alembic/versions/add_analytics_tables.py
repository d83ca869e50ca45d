"""add analytics tables

Revision ID: add_analytics_tables
Revises: 000000000000
Create Date: 2026-09-28

analytics_metrics (append-only), admin_recommendations with a partial
unique index on (recommendation_type, title) for unimplemented rows, and
reading_patterns unique on (pattern_type, pattern_name).
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "add_analytics_tables"
down_revision: str = "000000000000"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "analytics_metrics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("metric_type", sa.String(), nullable=False),
        sa.Column("metric_name", sa.String(), nullable=False),
        sa.Column("metric_value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("calculated_at", sa.DateTime(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )
    op.create_index("ix_analytics_metrics_metric_type", "analytics_metrics", ["metric_type"])
    op.create_index("ix_analytics_metrics_calculated_at", "analytics_metrics", ["calculated_at"])

    op.create_table(
        "admin_recommendations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recommendation_type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("confidence_score", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_implemented", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.CheckConstraint("priority IN (1, 2, 3)", name="ck_admin_recommendations_priority"),
        sa.CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 1",
            name="ck_admin_recommendations_confidence",
        ),
    )
    # Dedup key for open recommendations; implemented rows may repeat a title
    op.create_index(
        "uq_admin_recommendations_open_type_title",
        "admin_recommendations",
        ["recommendation_type", "title"],
        unique=True,
        postgresql_where=sa.text("is_implemented = false"),
        sqlite_where=sa.text("is_implemented = 0"),
    )

    op.create_table(
        "reading_patterns",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("pattern_type", sa.String(), nullable=False),
        sa.Column("pattern_name", sa.String(), nullable=False),
        sa.Column("pattern_value", sa.Text(), nullable=False, server_default=""),
        sa.Column("frequency", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("identified_at", sa.DateTime(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.UniqueConstraint("pattern_type", "pattern_name", name="uq_reading_patterns_type_name"),
        sa.CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_reading_patterns_confidence"),
    )


def downgrade() -> None:
    op.drop_table("reading_patterns")
    op.drop_index("uq_admin_recommendations_open_type_title", table_name="admin_recommendations")
    op.drop_table("admin_recommendations")
    op.drop_index("ix_analytics_metrics_calculated_at", table_name="analytics_metrics")
    op.drop_index("ix_analytics_metrics_metric_type", table_name="analytics_metrics")
    op.drop_table("analytics_metrics")
