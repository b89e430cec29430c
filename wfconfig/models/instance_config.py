"""
Workflow Configuration Studio
Persisted workflow-instance configuration models.

Models:
    - WorkflowInstance:        one configurable workflow instance of an application
    - WorkflowAppConfig:       one configured step (substage template placed into a stage)
    - WorkflowAppConfigDep:    dependency descriptor of a configured step
    - WorkflowAppConfigParam:  parameter value of a configured step
    - WorkflowAppConfigFile:   file rule for an upload-typed parameter of a configured step

Architecture:
    WorkflowApplication ──1:N──▶ WorkflowInstance ──1:N──▶ WorkflowAppConfig
    WorkflowAppConfig ──1:N──▶ WorkflowAppConfigDep / Param / File
    WorkflowAppConfig ──N:M──▶ WorkflowAttestation  (workflow_app_config_attests)

Legacy storage conventions kept for API compatibility:
    - flags are 'Y' / 'N' strings
    - WorkflowAppConfigDep.dependency_substage_id holds whatever reference the
      writer had at hand (persisted config id, sequence, or template id); the
      engine's dependency resolver sorts that out on load.
"""

from datetime import datetime, timezone

from wfconfig.models import db
from wfconfig.models.catalog import parse_id_list


# ── Constants ────────────────────────────────────────────────────────────────

YES_NO = {"Y", "N"}

FLAG_COLUMNS = ("isactive", "auto", "adhoc", "approval", "attest", "upload", "isalteryx")


workflow_app_config_attests = db.Table(
    "workflow_app_config_attests",
    db.Column(
        "config_id", db.Integer,
        db.ForeignKey("workflow_app_configs.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "attestation_id", db.Integer,
        db.ForeignKey("workflow_attestations.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


# ═════════════════════════════════════════════════════════════════════════════
# 1. WorkflowInstance
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowInstance(db.Model):
    """
    A configurable workflow instance.
    ``config_id`` is the externally visible identifier (unique per application).
    """

    __tablename__ = "workflow_instances"

    id = db.Column(db.Integer, primary_key=True)
    application_id = db.Column(
        db.Integer, db.ForeignKey("workflow_applications.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    config_id = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(200), nullable=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("application_id", "config_id", name="uq_workflow_instance_config"),
    )

    configs = db.relationship(
        "WorkflowAppConfig", backref="instance", lazy="dynamic",
        cascade="all, delete-orphan", order_by="WorkflowAppConfig.substage_seq",
    )

    def to_dict(self):
        return {
            "app_id": self.application_id,
            "config_id": self.config_id,
            "config_name": self.name,
            "step_count": self.configs.count(),
        }

    def __repr__(self):
        return f"<WorkflowInstance {self.config_id} app={self.application_id}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. WorkflowAppConfig
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowAppConfig(db.Model):
    """
    One configured step of a workflow instance.
    Stage and substage identity are snapshotted (name, mappings) at placement time.
    """

    __tablename__ = "workflow_app_configs"

    id = db.Column(db.Integer, primary_key=True)
    instance_id = db.Column(
        db.Integer, db.ForeignKey("workflow_instances.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    application_id = db.Column(
        db.Integer, db.ForeignKey("workflow_applications.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    substage_seq = db.Column(
        db.Integer, nullable=False, default=0,
        comment="Execution order — instance-wide, dense 1..N",
    )

    # Stage reference (snapshot)
    stage_id = db.Column(db.Integer, nullable=False, index=True)
    stage_name = db.Column(db.String(200), default="")

    # Substage template snapshot
    substage_id = db.Column(db.Integer, nullable=False, index=True)
    substage_name = db.Column(db.String(200), default="")
    component_ref = db.Column(db.String(300), default="")
    default_stage_id = db.Column(db.Integer, nullable=True)
    param_mapping = db.Column(db.String(500), default="")
    attestation_mapping = db.Column(db.String(500), default="")
    entitlement_id = db.Column(db.Integer, nullable=True)
    follow_up = db.Column(db.Boolean, nullable=False, default=False)

    # Legacy Y/N flags
    isactive = db.Column(db.String(1), nullable=False, default="Y")
    auto = db.Column(db.String(1), nullable=False, default="N")
    adhoc = db.Column(db.String(1), nullable=False, default="N")
    approval = db.Column(db.String(1), nullable=False, default="N")
    attest = db.Column(db.String(1), nullable=False, default="N")
    upload = db.Column(db.String(1), nullable=False, default="N")
    isalteryx = db.Column(db.String(1), nullable=False, default="N")

    updated_by = db.Column(db.String(100), default="system")
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ── Constraints ──────────────────────────────────────────────────────
    __table_args__ = tuple(
        db.CheckConstraint(f"{col} IN ('Y','N')", name=f"ck_app_config_{col}")
        for col in FLAG_COLUMNS
    )

    # ── Relationships ────────────────────────────────────────────────────
    deps = db.relationship(
        "WorkflowAppConfigDep", backref="config", lazy="select",
        cascade="all, delete-orphan", order_by="WorkflowAppConfigDep.id",
    )
    params = db.relationship(
        "WorkflowAppConfigParam", backref="config", lazy="select",
        cascade="all, delete-orphan", order_by="WorkflowAppConfigParam.id",
    )
    files = db.relationship(
        "WorkflowAppConfigFile", backref="config", lazy="select",
        cascade="all, delete-orphan", order_by="WorkflowAppConfigFile.id",
    )
    attestations = db.relationship(
        "WorkflowAttestation", secondary=workflow_app_config_attests, lazy="select",
        order_by="WorkflowAttestation.id",
    )

    def to_dict(self):
        return {
            "workflow_app_config_id": self.id,
            "app_group_id": self.instance.config_id if self.instance else None,
            "workflow_application": self.application_id,
            "substage_seq": self.substage_seq,
            "isactive": self.isactive,
            "auto": self.auto,
            "adhoc": self.adhoc,
            "approval": self.approval,
            "attest": self.attest,
            "upload": self.upload,
            "isalteryx": self.isalteryx,
            "workflow_stage": {
                "stage_id": self.stage_id,
                "name": self.stage_name,
            },
            "workflow_substage": {
                "substage_id": self.substage_id,
                "name": self.substage_name,
                "component_ref": self.component_ref,
                "default_stage_id": self.default_stage_id,
                "param_mapping": parse_id_list(self.param_mapping),
                "attestation_mapping": parse_id_list(self.attestation_mapping),
                "entitlement_id": self.entitlement_id,
                "follow_up": bool(self.follow_up),
            },
            "workflow_app_config_deps": [d.to_dict() for d in self.deps],
            "workflow_app_config_params": [p.to_dict() for p in self.params],
            "workflow_app_config_files": [f.to_dict() for f in self.files],
            "workflow_attests": [a.to_dict() for a in self.attestations],
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<WorkflowAppConfig {self.id}: #{self.substage_seq} {self.stage_id}/{self.substage_id}>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. WorkflowAppConfigDep
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowAppConfigDep(db.Model):
    """Dependency descriptor: the owning step waits on the referenced step."""

    __tablename__ = "workflow_app_config_deps"

    id = db.Column(db.Integer, primary_key=True)
    config_id = db.Column(
        db.Integer, db.ForeignKey("workflow_app_configs.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    dependency_substage_id = db.Column(
        db.Integer, nullable=False,
        comment="Persisted config id (written by this backend); older rows may hold a sequence or template id",
    )

    def to_dict(self):
        return {
            "workflow_app_config_id": self.config_id,
            "dependency_substage_id": self.dependency_substage_id,
        }

    def __repr__(self):
        return f"<WorkflowAppConfigDep {self.config_id} → {self.dependency_substage_id}>"


# ═════════════════════════════════════════════════════════════════════════════
# 4. WorkflowAppConfigParam
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowAppConfigParam(db.Model):
    """Value of one value-typed parameter for a configured step."""

    __tablename__ = "workflow_app_config_params"

    id = db.Column(db.Integer, primary_key=True)
    config_id = db.Column(
        db.Integer, db.ForeignKey("workflow_app_configs.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    value = db.Column(db.Text, default="")

    __table_args__ = (
        db.UniqueConstraint("config_id", "name", name="uq_app_config_param"),
    )

    def to_dict(self):
        return {"name": self.name, "value": self.value}

    def __repr__(self):
        return f"<WorkflowAppConfigParam {self.config_id}:{self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 5. WorkflowAppConfigFile
# ═════════════════════════════════════════════════════════════════════════════


class WorkflowAppConfigFile(db.Model):
    """File rule attached to an upload-typed parameter of a configured step."""

    __tablename__ = "workflow_app_config_files"

    id = db.Column(db.Integer, primary_key=True)
    config_id = db.Column(
        db.Integer, db.ForeignKey("workflow_app_configs.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    param_type = db.Column(db.String(30), default="upload")
    value = db.Column(db.String(500), default="", comment="File name pattern")
    description = db.Column(db.Text, default="")
    required = db.Column(db.String(1), nullable=False, default="N")
    email_file = db.Column(db.String(1), nullable=False, default="N")
    file_upload = db.Column(db.String(1), nullable=False, default="Y")

    __table_args__ = (
        db.UniqueConstraint("config_id", "name", name="uq_app_config_file"),
    )

    def to_dict(self):
        return {
            "name": self.name,
            "param_type": self.param_type,
            "value": self.value,
            "description": self.description,
            "required": self.required,
            "email_file": self.email_file,
            "file_upload": self.file_upload,
        }

    def __repr__(self):
        return f"<WorkflowAppConfigFile {self.config_id}:{self.name}>"
