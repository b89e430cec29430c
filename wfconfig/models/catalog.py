"""
Workflow Configuration Studio
Metadata catalogue models — read-only inputs to the configuration engine.

Models:
    - WorkflowApplication:  an application whose workflow instances are configured
    - WorkflowStage:        a named phase of a workflow, owned by one application
    - WorkflowSubstage:     reusable unit-of-work template (component, parameter/attestation mapping)
    - WorkflowParameter:    system-wide parameter definition (value-typed or upload-typed)
    - WorkflowAttestation:  system-wide attestation definition

Architecture:
    WorkflowApplication ──1:N──▶ WorkflowStage ──1:N──▶ WorkflowSubstage (default stage)
    WorkflowSubstage.param_mapping       ──▶ WorkflowParameter.id   (comma-separated ids)
    WorkflowSubstage.attestation_mapping ──▶ WorkflowAttestation.id (comma-separated ids)
"""

from datetime import datetime, timezone

from wfconfig.models import db


# ── Constants ────────────────────────────────────────────────────────────────

PARAM_TYPES = {"text", "number", "date", "boolean", "upload"}

UPLOAD_PARAM_TYPE = "upload"


def parse_id_list(value) -> list[int]:
    """Parse a legacy comma-separated id mapping ("3, 5,8") into ints.

    Lists pass through; blanks and non-numeric fragments are skipped.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = str(value).split(",")
    ids = []
    for item in items:
        text = str(item).strip()
        if text.isdigit():
            ids.append(int(text))
    return ids


def format_id_list(ids) -> str:
    """Inverse of parse_id_list — stable comma-separated storage form."""
    return ",".join(str(i) for i in parse_id_list(ids))


# ═════════════════════════════════════════════════════════════════════════════
# 1. WorkflowApplication
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowApplication(db.Model):
    """Application whose workflow instances are assembled from catalogue templates."""

    __tablename__ = "workflow_applications"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(100), default="")
    description = db.Column(db.Text, default="")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    stages = db.relationship(
        "WorkflowStage", backref="application", lazy="dynamic",
        cascade="all, delete-orphan", order_by="WorkflowStage.id",
    )

    def to_dict(self):
        return {
            "app_id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "is_active": self.is_active,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<WorkflowApplication {self.id}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. WorkflowStage
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowStage(db.Model):
    """Named phase of a workflow; groups configured substages."""

    __tablename__ = "workflow_stages"

    id = db.Column(db.Integer, primary_key=True)
    application_id = db.Column(
        db.Integer, db.ForeignKey("workflow_applications.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    updated_by = db.Column(db.String(100), default="system")
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "stage_id": self.id,
            "name": self.name,
            "application_id": self.application_id,
        }

    def __repr__(self):
        return f"<WorkflowStage {self.id}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. WorkflowSubstage
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowSubstage(db.Model):
    """
    Reusable substage template.
    A template is snapshotted into a configured record when placed into a stage;
    later catalogue edits do not rewrite existing configurations.
    """

    __tablename__ = "workflow_substages"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    component_ref = db.Column(
        db.String(300), default="",
        comment="Service link / component executed for this substage",
    )
    default_stage_id = db.Column(
        db.Integer, db.ForeignKey("workflow_stages.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    param_mapping = db.Column(
        db.String(500), default="",
        comment="Comma-separated WorkflowParameter ids",
    )
    attestation_mapping = db.Column(
        db.String(500), default="",
        comment="Comma-separated WorkflowAttestation ids",
    )
    entitlement_id = db.Column(db.Integer, nullable=True)
    follow_up = db.Column(db.Boolean, nullable=False, default=False)
    updated_by = db.Column(db.String(100), default="system")
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    default_stage = db.relationship("WorkflowStage", foreign_keys=[default_stage_id])

    def to_dict(self):
        return {
            "substage_id": self.id,
            "name": self.name,
            "component_ref": self.component_ref,
            "default_stage_id": self.default_stage_id,
            "param_mapping": parse_id_list(self.param_mapping),
            "attestation_mapping": parse_id_list(self.attestation_mapping),
            "entitlement_id": self.entitlement_id,
            "follow_up": bool(self.follow_up),
        }

    def __repr__(self):
        return f"<WorkflowSubstage {self.id}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 4. WorkflowParameter
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowParameter(db.Model):
    """System-wide parameter definition. Upload-typed parameters carry file rules."""

    __tablename__ = "workflow_parameters"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    param_type = db.Column(
        db.String(30), default="text",
        comment="text | number | date | boolean | upload",
    )
    description = db.Column(db.Text, default="")

    __table_args__ = (
        db.CheckConstraint(
            "param_type IN ('text','number','date','boolean','upload')",
            name="ck_workflow_parameter_type",
        ),
    )

    def to_dict(self):
        return {
            "param_id": self.id,
            "name": self.name,
            "param_type": self.param_type,
            "description": self.description,
        }

    def __repr__(self):
        return f"<WorkflowParameter {self.id}: {self.name} [{self.param_type}]>"


# ═════════════════════════════════════════════════════════════════════════════
# 5. WorkflowAttestation
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowAttestation(db.Model):
    """System-wide attestation definition selectable on any manual substage."""

    __tablename__ = "workflow_attestations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(50), default="")
    description = db.Column(db.Text, default="")

    def to_dict(self):
        return {
            "attestation_id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
        }

    def __repr__(self):
        return f"<WorkflowAttestation {self.id}: {self.name}>"
