"""workflow_config_initial

Creates the workflow configuration schema:
  - workflow_applications / workflow_stages / workflow_substages
  - workflow_parameters / workflow_attestations     — system-wide catalogue
  - workflow_instances                              — configurable instances per application
  - workflow_app_configs                            — configured steps (Y/N legacy flags)
  - workflow_app_config_deps / _params / _files     — per-step collections
  - workflow_app_config_attests                     — step ↔ attestation association

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via
db.create_all() in a development environment.

Revision ID: 5e1f0c2a9b31
Revises:
Create Date: 2026-10-18 09:12:40.114025
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5e1f0c2a9b31'
down_revision = None
branch_labels = None
depends_on = None

FLAG_COLUMNS = ("isactive", "auto", "adhoc", "approval", "attest", "upload", "isalteryx")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Catalogue ─────────────────────────────────────────────────────────
    if "workflow_applications" not in existing:
        op.create_table(
            "workflow_applications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("category", sa.String(length=100), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )

    if "workflow_stages" not in existing:
        op.create_table(
            "workflow_stages",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("application_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("updated_by", sa.String(length=100), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["application_id"], ["workflow_applications.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_workflow_stages_application_id", "workflow_stages", ["application_id"])

    if "workflow_substages" not in existing:
        op.create_table(
            "workflow_substages",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column(
                "component_ref", sa.String(length=300), nullable=True,
                comment="Service link / component executed for this substage",
            ),
            sa.Column("default_stage_id", sa.Integer(), nullable=True),
            sa.Column(
                "param_mapping", sa.String(length=500), nullable=True,
                comment="Comma-separated WorkflowParameter ids",
            ),
            sa.Column(
                "attestation_mapping", sa.String(length=500), nullable=True,
                comment="Comma-separated WorkflowAttestation ids",
            ),
            sa.Column("entitlement_id", sa.Integer(), nullable=True),
            sa.Column("follow_up", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("updated_by", sa.String(length=100), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["default_stage_id"], ["workflow_stages.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_workflow_substages_default_stage_id", "workflow_substages", ["default_stage_id"])

    if "workflow_parameters" not in existing:
        op.create_table(
            "workflow_parameters",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column(
                "param_type", sa.String(length=30), nullable=True,
                comment="text | number | date | boolean | upload",
            ),
            sa.Column("description", sa.Text(), nullable=True),
            sa.CheckConstraint(
                "param_type IN ('text','number','date','boolean','upload')",
                name="ck_workflow_parameter_type",
            ),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "workflow_attestations" not in existing:
        op.create_table(
            "workflow_attestations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("type", sa.String(length=50), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    # ── Instances & configuration ─────────────────────────────────────────
    if "workflow_instances" not in existing:
        op.create_table(
            "workflow_instances",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("application_id", sa.Integer(), nullable=False),
            sa.Column("config_id", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["application_id"], ["workflow_applications.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("application_id", "config_id", name="uq_workflow_instance_config"),
        )
        op.create_index("ix_workflow_instances_application_id", "workflow_instances", ["application_id"])

    if "workflow_app_configs" not in existing:
        op.create_table(
            "workflow_app_configs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("instance_id", sa.Integer(), nullable=False),
            sa.Column("application_id", sa.Integer(), nullable=False),
            sa.Column(
                "substage_seq", sa.Integer(), nullable=False, server_default="0",
                comment="Execution order — instance-wide, dense 1..N",
            ),
            sa.Column("stage_id", sa.Integer(), nullable=False),
            sa.Column("stage_name", sa.String(length=200), nullable=True),
            sa.Column("substage_id", sa.Integer(), nullable=False),
            sa.Column("substage_name", sa.String(length=200), nullable=True),
            sa.Column("component_ref", sa.String(length=300), nullable=True),
            sa.Column("default_stage_id", sa.Integer(), nullable=True),
            sa.Column("param_mapping", sa.String(length=500), nullable=True),
            sa.Column("attestation_mapping", sa.String(length=500), nullable=True),
            sa.Column("entitlement_id", sa.Integer(), nullable=True),
            sa.Column("follow_up", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("isactive", sa.String(length=1), nullable=False, server_default="Y"),
            *[
                sa.Column(col, sa.String(length=1), nullable=False, server_default="N")
                for col in FLAG_COLUMNS if col != "isactive"
            ],
            sa.Column("updated_by", sa.String(length=100), nullable=True),
            *_timestamps(),
            *[
                sa.CheckConstraint(f"{col} IN ('Y','N')", name=f"ck_app_config_{col}")
                for col in FLAG_COLUMNS
            ],
            sa.ForeignKeyConstraint(["instance_id"], ["workflow_instances.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["application_id"], ["workflow_applications.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_workflow_app_configs_instance_id", "workflow_app_configs", ["instance_id"])
        op.create_index("ix_workflow_app_configs_application_id", "workflow_app_configs", ["application_id"])
        op.create_index("ix_workflow_app_configs_stage_id", "workflow_app_configs", ["stage_id"])
        op.create_index("ix_workflow_app_configs_substage_id", "workflow_app_configs", ["substage_id"])

    if "workflow_app_config_deps" not in existing:
        op.create_table(
            "workflow_app_config_deps",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("config_id", sa.Integer(), nullable=False),
            sa.Column(
                "dependency_substage_id", sa.Integer(), nullable=False,
                comment="Persisted config id (written by this backend); older rows may hold a sequence or template id",
            ),
            sa.ForeignKeyConstraint(["config_id"], ["workflow_app_configs.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_workflow_app_config_deps_config_id", "workflow_app_config_deps", ["config_id"])

    if "workflow_app_config_params" not in existing:
        op.create_table(
            "workflow_app_config_params",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("config_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("value", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["config_id"], ["workflow_app_configs.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("config_id", "name", name="uq_app_config_param"),
        )
        op.create_index("ix_workflow_app_config_params_config_id", "workflow_app_config_params", ["config_id"])

    if "workflow_app_config_files" not in existing:
        op.create_table(
            "workflow_app_config_files",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("config_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("param_type", sa.String(length=30), nullable=True),
            sa.Column("value", sa.String(length=500), nullable=True, comment="File name pattern"),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("required", sa.String(length=1), nullable=False, server_default="N"),
            sa.Column("email_file", sa.String(length=1), nullable=False, server_default="N"),
            sa.Column("file_upload", sa.String(length=1), nullable=False, server_default="Y"),
            sa.ForeignKeyConstraint(["config_id"], ["workflow_app_configs.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("config_id", "name", name="uq_app_config_file"),
        )
        op.create_index("ix_workflow_app_config_files_config_id", "workflow_app_config_files", ["config_id"])

    if "workflow_app_config_attests" not in existing:
        op.create_table(
            "workflow_app_config_attests",
            sa.Column("config_id", sa.Integer(), nullable=False),
            sa.Column("attestation_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["config_id"], ["workflow_app_configs.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["attestation_id"], ["workflow_attestations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("config_id", "attestation_id"),
        )


def downgrade():
    for table in (
        "workflow_app_config_attests",
        "workflow_app_config_files",
        "workflow_app_config_params",
        "workflow_app_config_deps",
        "workflow_app_configs",
        "workflow_instances",
        "workflow_attestations",
        "workflow_parameters",
        "workflow_substages",
        "workflow_stages",
        "workflow_applications",
    ):
        op.drop_table(table)
