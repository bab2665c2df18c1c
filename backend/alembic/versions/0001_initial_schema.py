"""Initial MycoTrack schema: materials, stock ledger, batches, logs, deliveries.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def _tenant_id():
    return sa.Column("tenant_id", sa.String(64), nullable=False, index=True)


def upgrade() -> None:
    # ── Reference data / inventory ───────────────────────────
    op.create_table(
        "materials",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(20)),
        sa.Column("uom", sa.String(20)),
        sa.Column("standard_cost", sa.Float()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "inventory",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("material_id", sa.String(64), sa.ForeignKey("materials.id"), nullable=False, index=True),
        sa.Column("quantity_on_hand", sa.Float()),
        sa.Column("location", sa.String(100)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("tenant_id", "material_id"),
    )
    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("material_id", sa.String(64), sa.ForeignKey("materials.id"), nullable=False, index=True),
        sa.Column("movement_type", sa.String(11), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("batch_id", sa.String(64), index=True),
        sa.Column("stage", sa.String(11)),
        sa.Column("reference_id", sa.String(64)),
        sa.Column("reason", sa.Text()),
        sa.Column("performed_by", sa.String(200)),
        sa.Column("created_at", sa.DateTime(timezone=True), index=True),
    )

    # ── Production ───────────────────────────────────────────
    op.create_table(
        "batches",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("species", sa.String(100), nullable=False),
        sa.Column("status", sa.String(11), index=True),
        sa.Column("location", sa.String(100)),
        sa.Column("incubation_location", sa.String(100)),
        sa.Column("fruiting_location", sa.String(100)),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("baseline_cap_diameter", sa.Float()),
        sa.Column("baseline_maturation_days", sa.Integer()),
        sa.Column("est_avg_weight_per_block", sa.Float()),
        sa.Column("current_flush", sa.Integer()),
        sa.Column("target_yield", sa.Float()),
        sa.Column("actual_yield", sa.Float()),
        sa.Column("delivery_status", sa.String(10)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "batch_items",
        sa.Column("id", sa.String(80), primary_key=True),
        _tenant_id(),
        sa.Column("batch_id", sa.String(64), sa.ForeignKey("batches.id"), nullable=False, index=True),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(19), index=True),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "production_logs",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("batch_id", sa.String(64), sa.ForeignKey("batches.id"), nullable=False, index=True),
        sa.Column("stage", sa.String(11), nullable=False, index=True),
        sa.Column("fields", sa.JSON()),
        sa.Column("date_started", sa.DateTime(timezone=True)),
        sa.Column("created_by", sa.String(200)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("last_modified", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "incubation_snapshots",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("batch_id", sa.String(64), sa.ForeignKey("batches.id"), nullable=False, index=True),
        sa.Column("room_no", sa.String(100)),
        sa.Column("counts", sa.JSON()),
        sa.Column("success_count", sa.Integer()),
        sa.Column("fail_count", sa.Integer()),
        sa.Column("notes", sa.Text()),
        sa.Column("date_started", sa.DateTime(timezone=True)),
        sa.Column("created_by", sa.String(200)),
    )
    op.create_table(
        "observations",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("batch_id", sa.String(64), sa.ForeignKey("batches.id"), nullable=False, index=True),
        sa.Column("flush_number", sa.Integer()),
        sa.Column("date", sa.DateTime(timezone=True)),
        sa.Column("pinning_date", sa.DateTime(timezone=True)),
        sa.Column("days_since_pinning", sa.Integer()),
        sa.Column("sample_size", sa.Integer()),
        sa.Column("avg_diameter", sa.Float()),
        sa.Column("dominant_shape", sa.String(8)),
        sa.Column("flat_percentage", sa.Float()),
        sa.Column("samples", sa.JSON()),
        sa.Column("maturity_index", sa.Integer()),
        sa.Column("suggested_status", sa.String(30)),
        sa.Column("status_label", sa.String(30)),
        sa.Column("alert_level", sa.String(8)),
        sa.Column("alert_message", sa.Text()),
        sa.Column("recorded_by", sa.String(200)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "harvest_logs",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("batch_id", sa.String(64), sa.ForeignKey("batches.id"), nullable=False, index=True),
        sa.Column("flush_number", sa.Integer(), nullable=False),
        sa.Column("harvest_date", sa.Date(), nullable=False),
        sa.Column("grade_a_yield", sa.Float()),
        sa.Column("grade_b_yield", sa.Float()),
        sa.Column("total_yield", sa.Float()),
        sa.Column("action", sa.String(10), nullable=False),
        sa.Column("recorded_by", sa.String(200)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )

    # ── Logistics / audit ────────────────────────────────────
    op.create_table(
        "delivery_orders",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("batch_id", sa.String(64), sa.ForeignKey("batches.id"), nullable=False, index=True),
        sa.Column("flush_number", sa.Integer(), nullable=False),
        sa.Column("species", sa.String(100)),
        sa.Column("estimated_yield", sa.Float()),
        sa.Column("delivery_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recipient", sa.String(200), nullable=False),
        sa.Column("status", sa.String(10), index=True),
        sa.Column("email_content", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("actor", sa.String(200), nullable=False),
        sa.Column("action", sa.String(50), nullable=False, index=True),
        sa.Column("entity_type", sa.String(50), nullable=False, index=True),
        sa.Column("entity_id", sa.String(80)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )
    op.create_table(
        "pending_alerts",
        sa.Column("id", sa.String(64), primary_key=True),
        _tenant_id(),
        sa.Column("batch_id", sa.String(64), index=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("level", sa.String(8)),
        sa.Column("recipient", sa.String(9)),
        sa.Column("channel", sa.String(10)),
        sa.Column("created_at", sa.DateTime(timezone=True), index=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True)),
        sa.Column("acknowledged_by", sa.String(200)),
    )


def downgrade() -> None:
    for table in (
        "pending_alerts", "activity_logs", "delivery_orders", "harvest_logs",
        "observations", "incubation_snapshots", "production_logs", "batch_items",
        "batches", "inventory_movements", "inventory", "materials",
    ):
        op.drop_table(table)
