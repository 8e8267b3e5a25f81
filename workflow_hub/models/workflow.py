"""
Workflow Hub
Workflow domain models.

Models:
    - Workflow: reusable template owning an ordered list of phases
    - Phase: ordered step of a workflow, owns its tasks
    - Task: unit of work with priority, man-hours and an optional form template
    - Project: external consumer of a workflow (only counted here)
"""

import uuid
from datetime import datetime, timezone

from workflow_hub.models import db

TASK_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
DEFAULT_TASK_PRIORITY = "MEDIUM"


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# ── Workflow ─────────────────────────────────────────────────────────────────


class Workflow(db.Model):
    """Reusable project template: phases in ``order``, tasks inside phases."""

    __tablename__ = "workflows"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    # "metadata" is reserved on declarative classes
    meta = db.Column("metadata", db.JSON, nullable=True)
    created_by_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # ── Relationships ────────────────────────────────────────────────────
    phases = db.relationship(
        "Phase", back_populates="workflow",
        cascade="all, delete-orphan", order_by="[Phase.order, Phase.created_at]",
    )
    # No delete cascade: deleting a workflow detaches its projects.
    projects = db.relationship("Project", back_populates="workflow", lazy="dynamic")
    created_by = db.relationship("User", back_populates="workflows")

    def to_dict(self, include_phases=True, counts=None):
        """Serialize the workflow; ``counts`` adds the ``_count`` block."""
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "isActive": self.is_active,
            "metadata": self.meta,
            "createdById": self.created_by_id,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
        if include_phases:
            d["phases"] = [p.to_dict() for p in self.phases]
        if counts is not None:
            d["_count"] = counts
        return d

    def __repr__(self):
        return f"<Workflow {self.id} {self.name!r}>"


# ── Phase ────────────────────────────────────────────────────────────────────


class Phase(db.Model):
    __tablename__ = "phases"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    workflow_id = db.Column(
        db.String(36),
        db.ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=0)  # not unique per workflow
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    workflow = db.relationship("Workflow", back_populates="phases")
    tasks = db.relationship(
        "Task", back_populates="phase",
        cascade="all, delete-orphan", order_by="[Task.created_at, Task.position]",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "workflowId": self.workflow_id,
            "name": self.name,
            "order": self.order,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "tasks": [t.to_dict() for t in self.tasks],
        }


# ── Task ─────────────────────────────────────────────────────────────────────


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    phase_id = db.Column(
        db.String(36),
        db.ForeignKey("phases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    priority = db.Column(
        db.String(20),
        nullable=False,
        default=DEFAULT_TASK_PRIORITY,
        comment="LOW | MEDIUM | HIGH | CRITICAL",
    )
    man_hours = db.Column(db.Float, nullable=True)
    form_template = db.Column(db.JSON, nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    phase = db.relationship("Phase", back_populates="tasks")

    def to_dict(self):
        return {
            "id": self.id,
            "phaseId": self.phase_id,
            "name": self.name,
            "description": self.description,
            "priority": self.priority,
            "manHours": self.man_hours,
            "formTemplate": self.form_template,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


# ── Project ──────────────────────────────────────────────────────────────────


class Project(db.Model):
    """Project instantiated from a workflow. Blocks single-workflow deletion."""

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    workflow_id = db.Column(
        db.String(36),
        db.ForeignKey("workflows.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    workflow = db.relationship("Workflow", back_populates="projects")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "workflowId": self.workflow_id,
            "createdAt": _iso(self.created_at),
        }
