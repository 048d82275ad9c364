"""ITP assignment and conformance schema.

- projects
- lots (lot_number unique per project)
- itp_templates
- itp_items
- lot_itp_assignments (one active row per lot/template pair)
- conformance_records (one row per lot/item pair)

Column types are backend-neutral so the same revision runs on Postgres and SQLite.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1d9a7e5b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Projects
    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("project_number", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"])

    # Lots
    op.create_table(
        "lots",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("lot_number", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location_description", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("project_id", "lot_number", name="uq_lots_project_lot_number"),
    )
    op.create_index("ix_lots_project_id", "lots", ["project_id"])

    # ITP templates and items
    op.create_table(
        "itp_templates",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("version", sa.Text(), nullable=False, server_default="1.0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_itp_templates_organization_id", "itp_templates", ["organization_id"])

    op.create_table(
        "itp_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("item_number", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("specification_reference", sa.Text(), nullable=True),
        sa.Column("inspection_method", sa.Text(), nullable=False, server_default="pass_fail"),
        sa.Column("acceptance_criteria", sa.Text(), nullable=True),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["template_id"], ["itp_templates.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_itp_items_template_id", "itp_items", ["template_id"])

    # Lot <-> template assignments
    op.create_table(
        "lot_itp_assignments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("lot_id", sa.Uuid(), nullable=False),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("assigned_by", sa.Uuid(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("removed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["lot_id"], ["lots.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["template_id"], ["itp_templates.id"]),
    )
    op.create_index("ix_lot_itp_assignments_lot_id", "lot_itp_assignments", ["lot_id"])
    op.create_index("ix_lot_itp_assignments_template_id", "lot_itp_assignments", ["template_id"])
    op.create_index(
        "uq_lot_itp_assignments_active_pair",
        "lot_itp_assignments",
        ["lot_id", "template_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    # Conformance records
    op.create_table(
        "conformance_records",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("lot_id", sa.Uuid(), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("result_pass_fail", sa.Text(), nullable=True),
        sa.Column("result_numeric", sa.Float(), nullable=True),
        sa.Column("result_text", sa.Text(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("is_non_conformance", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("corrective_action", sa.Text(), nullable=True),
        sa.Column("inspector_id", sa.Uuid(), nullable=True),
        sa.Column("inspection_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.Uuid(), nullable=True),
        sa.Column("approval_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["lot_id"], ["lots.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["item_id"], ["itp_items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["template_id"], ["itp_templates.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("lot_id", "item_id", name="uq_conformance_records_lot_item"),
    )
    op.create_index("ix_conformance_records_lot_id", "conformance_records", ["lot_id"])
    op.create_index("ix_conformance_records_item_id", "conformance_records", ["item_id"])
    op.create_index("ix_conformance_records_template_id", "conformance_records", ["template_id"])


def downgrade() -> None:
    # Drop tables in reverse dependency order
    op.drop_table("conformance_records")
    op.drop_index("uq_lot_itp_assignments_active_pair", table_name="lot_itp_assignments")
    op.drop_table("lot_itp_assignments")
    op.drop_table("itp_items")
    op.drop_table("itp_templates")
    op.drop_table("lots")
    op.drop_table("projects")
