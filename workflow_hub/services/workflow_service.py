"""Workflow service layer — business logic for workflows, phases and tasks.

Transaction policy: public write functions commit on success and roll the
session back on any exception, so a failed call leaves no partial state.
Internal helpers only mutate the session and flush.

Update semantics (``update_workflow``):
    - scalar fields are changed only when present in the payload
    - a supplied ``phases`` list is the complete desired state:
        * existing phases missing from it are deleted with their tasks
        * phases with an ``id`` are updated and their task list is
          replaced wholesale (old tasks deleted, new ones inserted, so task
          ids change on every update)
        * phases without an ``id`` are created
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func

from workflow_hub.core.exceptions import ConflictError, NotFoundError, ValidationError
from workflow_hub.models import db
from workflow_hub.models.workflow import Phase, Project, Task, Workflow
from workflow_hub.services.workflow_schema import (
    validate_create_payload,
    validate_ids_payload,
    validate_update_payload,
)

logger = logging.getLogger(__name__)


# ── Builders ─────────────────────────────────────────────────────────────────


def _build_tasks(task_specs: list[dict]) -> list[Task]:
    return [
        Task(
            name=spec["name"],
            description=spec["description"],
            priority=spec["priority"],
            man_hours=spec["man_hours"],
            form_template=spec["form_template"],
            position=position,
        )
        for position, spec in enumerate(task_specs)
    ]


def _build_phase(phase_spec: dict) -> Phase:
    return Phase(
        name=phase_spec["name"],
        order=phase_spec["order"],
        tasks=_build_tasks(phase_spec["tasks"]),
    )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _count_by_workflow(model, workflow_ids: list[str]) -> dict[str, int]:
    if not workflow_ids:
        return {}
    rows = (
        db.session.query(model.workflow_id, func.count(model.id))
        .filter(model.workflow_id.in_(workflow_ids))
        .group_by(model.workflow_id)
        .all()
    )
    return {wid: count for wid, count in rows}


def serialize_workflow(workflow: Workflow) -> dict:
    """Full graph plus ``_count`` of phases and referencing projects."""
    return workflow.to_dict(
        include_phases=True,
        counts={
            "phases": len(workflow.phases),
            "projects": workflow.projects.count(),
        },
    )


# ═════════════════════════════════════════════════════════════════════════════
# READ
# ═════════════════════════════════════════════════════════════════════════════


def list_workflows(*, page: int = 1, limit: int = 10, search: str = "") -> dict:
    """Paginated workflow list, newest change first.

    Args:
        page: 1-indexed page number.
        limit: Page size.
        search: Case-insensitive substring match on name.

    Returns:
        {"workflows": [...], "pagination": {"total", "pages", "page", "limit"}}
    """
    query = Workflow.query
    if search:
        query = query.filter(Workflow.name.ilike(f"%{_escape_like(search)}%", escape="\\"))

    total = query.count()
    workflows = (
        query.order_by(Workflow.updated_at.desc(), Workflow.created_at.desc(), Workflow.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    ids = [w.id for w in workflows]
    phase_counts = _count_by_workflow(Phase, ids)
    project_counts = _count_by_workflow(Project, ids)

    return {
        "workflows": [
            w.to_dict(
                include_phases=False,
                counts={
                    "phases": phase_counts.get(w.id, 0),
                    "projects": project_counts.get(w.id, 0),
                },
            )
            for w in workflows
        ],
        "pagination": {
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
            "page": page,
            "limit": limit,
        },
    }


def get_workflow_detail(workflow_id: str) -> Workflow:
    """Fetch a workflow or raise NotFoundError.

    ``Workflow.phases`` and ``Phase.tasks`` carry their ordering on the
    relationship, so the returned graph is already sorted.
    """
    workflow = db.session.get(Workflow, workflow_id)
    if workflow is None:
        raise NotFoundError(resource="Workflow", resource_id=workflow_id)
    return workflow


# ═════════════════════════════════════════════════════════════════════════════
# CREATE
# ═════════════════════════════════════════════════════════════════════════════


def create_workflow(data: Any, *, created_by_id: str | None = None) -> Workflow:
    """Create a workflow with its nested phases and tasks in one transaction."""
    payload = validate_create_payload(data)

    workflow = Workflow(
        name=payload["name"],
        description=payload.get("description"),
        created_by_id=created_by_id,
        phases=[_build_phase(p) for p in payload["phases"]],
    )
    if "is_active" in payload:
        workflow.is_active = payload["is_active"]
    if "meta" in payload:
        workflow.meta = payload["meta"]

    try:
        db.session.add(workflow)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Workflow create failed name=%s", payload["name"][:200])
        raise

    logger.info(
        "Workflow created id=%s phases=%d by=%s",
        workflow.id, len(payload["phases"]), created_by_id,
    )
    return get_workflow_detail(workflow.id)


# ═════════════════════════════════════════════════════════════════════════════
# UPDATE (nested reconciliation)
# ═════════════════════════════════════════════════════════════════════════════


def _apply_scalars(workflow: Workflow, payload: dict) -> None:
    for key in ("name", "description", "is_active", "meta"):
        if key in payload:
            setattr(workflow, key, payload[key])
    workflow.updated_at = datetime.now(timezone.utc)


def _reconcile_phases(workflow: Workflow, phase_specs: list[dict]) -> None:
    """Make ``workflow.phases`` match ``phase_specs`` exactly."""
    existing = {phase.id: phase for phase in workflow.phases}

    foreign = {
        f"phases.{i}.id": "Phase not found in this workflow"
        for i, spec in enumerate(phase_specs)
        if spec.get("id") and spec["id"] not in existing
    }
    if foreign:
        raise ValidationError("Invalid workflow payload", details=foreign)

    keep_ids = {spec["id"] for spec in phase_specs if spec.get("id")}
    for phase in list(workflow.phases):
        if phase.id not in keep_ids:
            workflow.phases.remove(phase)  # delete-orphan drops its tasks too

    for spec in phase_specs:
        if spec.get("id"):
            phase = existing[spec["id"]]
            phase.name = spec["name"]
            phase.order = spec["order"]
            # Full replace: the old rows go before the new ones are inserted.
            phase.tasks.clear()
            db.session.flush()
            phase.tasks.extend(_build_tasks(spec["tasks"]))
        else:
            workflow.phases.append(_build_phase(spec))

    db.session.flush()


def update_workflow(workflow_id: str, data: Any) -> Workflow:
    """Apply a partial update atomically; see module docstring for semantics.

    Raises:
        ValidationError: malformed payload or a phase id from another workflow.
        NotFoundError: no workflow with ``workflow_id``.
    """
    payload = validate_update_payload(data)
    workflow = get_workflow_detail(workflow_id)

    try:
        _apply_scalars(workflow, payload)
        if "phases" in payload:
            _reconcile_phases(workflow, payload["phases"])
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.warning("Workflow update rolled back id=%s", workflow_id)
        raise

    # Re-read so relationship ordering reflects the committed rows.
    db.session.expire(workflow)
    logger.info(
        "Workflow updated id=%s phases=%s",
        workflow_id, len(payload["phases"]) if "phases" in payload else "unchanged",
    )
    return get_workflow_detail(workflow_id)


# ═════════════════════════════════════════════════════════════════════════════
# DELETE
# ═════════════════════════════════════════════════════════════════════════════


def delete_workflow(workflow_id: str) -> None:
    """Delete one workflow unless a project still references it.

    Raises:
        NotFoundError: unknown id.
        ConflictError: at least one project uses the workflow.
    """
    workflow = get_workflow_detail(workflow_id)
    project_count = workflow.projects.count()
    if project_count > 0:
        logger.info(
            "Workflow delete refused id=%s projects=%d", workflow_id, project_count,
        )
        raise ConflictError(
            "Workflow",
            message="Cannot delete workflow with associated projects",
        )

    try:
        db.session.delete(workflow)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Workflow deleted id=%s", workflow_id)


def bulk_delete_workflows(data: Any) -> int:
    """Delete every workflow whose id is listed.

    Unlike ``delete_workflow`` this does not check for projects; projects
    that referenced a removed workflow are kept with ``workflow_id`` unset.

    Returns:
        Number of workflows deleted. Unknown ids are ignored.
    """
    ids = validate_ids_payload(data)
    if not ids:
        return 0

    workflows = Workflow.query.filter(Workflow.id.in_(ids)).all()
    found_ids = [w.id for w in workflows]
    try:
        Project.query.filter(Project.workflow_id.in_(found_ids)).update(
            {"workflow_id": None}, synchronize_session="fetch",
        )
        for workflow in workflows:
            db.session.delete(workflow)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Bulk delete removed %d of %d requested workflows", len(workflows), len(ids))
    return len(workflows)
