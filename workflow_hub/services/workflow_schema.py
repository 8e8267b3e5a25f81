"""
Payload validation for workflow create / update / bulk-delete requests.

Every function collects *all* failing fields before raising, so a single
ValidationError carries the full ``details`` map keyed by dotted path
(``phases.0.tasks.2.priority``). Returned dicts use the model's snake_case
attribute names; unknown keys in the input are dropped.
"""

from typing import Any

from workflow_hub.core.exceptions import ValidationError
from workflow_hub.models.workflow import DEFAULT_TASK_PRIORITY, TASK_PRIORITIES

NAME_MAX_LENGTH = 200
# Largest value a portable INTEGER column holds (Postgres int4)
INT_COLUMN_MAX = 2**31 - 1


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_name(value, path: str, label: str, errors: dict) -> str | None:
    if not isinstance(value, str) or not value.strip():
        errors[path] = f"{label} is required"
        return None
    if len(value) > NAME_MAX_LENGTH:
        errors[path] = f"{label} exceeds maximum length of {NAME_MAX_LENGTH} characters"
        return None
    return value


def _check_optional_text(value, path: str, errors: dict) -> str | None:
    if value is not None and not isinstance(value, str):
        errors[path] = "Must be a string"
        return None
    return value


def _check_form_template(value, path: str, errors: dict):
    """``None`` or ``{"fields": [{type, label, required?, options?}]}``."""
    if value is None:
        return None
    if not isinstance(value, dict) or not isinstance(value.get("fields"), list):
        errors[path] = "Form template must be an object with a 'fields' list"
        return None

    fields = []
    for i, field in enumerate(value["fields"]):
        fpath = f"{path}.fields.{i}"
        if not isinstance(field, dict):
            errors[fpath] = "Field must be an object"
            continue
        if not isinstance(field.get("type"), str):
            errors[f"{fpath}.type"] = "Field type is required"
        if not isinstance(field.get("label"), str):
            errors[f"{fpath}.label"] = "Field label is required"
        if "required" in field and not isinstance(field["required"], bool):
            errors[f"{fpath}.required"] = "Must be a boolean"
        options = field.get("options")
        if options is not None and (
            not isinstance(options, list) or not all(isinstance(o, str) for o in options)
        ):
            errors[f"{fpath}.options"] = "Options must be a list of strings"

        clean = {"type": field.get("type"), "label": field.get("label")}
        if "required" in field:
            clean["required"] = field["required"]
        if options is not None:
            clean["options"] = options
        fields.append(clean)
    return {"fields": fields}


def _check_task(task, path: str, errors: dict) -> dict:
    if not isinstance(task, dict):
        errors[path] = "Task must be an object"
        return {}

    priority = task.get("priority")
    if priority is None:
        priority = DEFAULT_TASK_PRIORITY
    elif priority not in TASK_PRIORITIES:
        errors[f"{path}.priority"] = f"Invalid priority: '{priority}'. Allowed: {list(TASK_PRIORITIES)}"

    man_hours = task.get("manHours")
    if man_hours is not None and (
        not _is_number(man_hours) or not 0 <= man_hours <= INT_COLUMN_MAX  # also rejects inf and NaN
    ):
        errors[f"{path}.manHours"] = f"Man-hours must be a number between 0 and {INT_COLUMN_MAX}"
        man_hours = None

    # Task ids are accepted but never reused: tasks are always recreated.
    return {
        "name": _check_name(task.get("name"), f"{path}.name", "Task name", errors),
        "description": _check_optional_text(task.get("description"), f"{path}.description", errors),
        "priority": priority,
        "man_hours": float(man_hours) if _is_number(man_hours) else None,
        "form_template": _check_form_template(task.get("formTemplate"), f"{path}.formTemplate", errors),
    }


def _check_phase(phase, path: str, errors: dict, *, allow_id: bool) -> dict:
    if not isinstance(phase, dict):
        errors[path] = "Phase must be an object"
        return {}

    order = phase.get("order")
    if not _is_int(order) or not 0 <= order <= INT_COLUMN_MAX:
        errors[f"{path}.order"] = f"Order must be an integer between 0 and {INT_COLUMN_MAX}"

    tasks = phase.get("tasks")
    if tasks is None:
        tasks = []
    if not isinstance(tasks, list):
        errors[f"{path}.tasks"] = "Tasks must be a list"
        tasks = []

    clean = {
        "name": _check_name(phase.get("name"), f"{path}.name", "Phase name", errors),
        "order": order,
        "tasks": [_check_task(t, f"{path}.tasks.{i}", errors) for i, t in enumerate(tasks)],
    }
    if allow_id:
        phase_id = phase.get("id")
        if phase_id is not None and (not isinstance(phase_id, str) or not phase_id):
            errors[f"{path}.id"] = "Phase id must be a non-empty string"
        clean["id"] = phase_id or None
    return clean


def _check_phases(phases, errors: dict, *, allow_id: bool) -> list[dict]:
    if not isinstance(phases, list):
        errors["phases"] = "Phases must be a list"
        return []
    return [
        _check_phase(p, f"phases.{i}", errors, allow_id=allow_id)
        for i, p in enumerate(phases)
    ]


def _check_common(data: dict, clean: dict, errors: dict) -> None:
    if "description" in data:
        clean["description"] = _check_optional_text(data["description"], "description", errors)
    if "isActive" in data:
        if not isinstance(data["isActive"], bool):
            errors["isActive"] = "Must be a boolean"
        clean["is_active"] = data["isActive"]
    if "metadata" in data:
        if data["metadata"] is not None and not isinstance(data["metadata"], dict):
            errors["metadata"] = "Metadata must be an object"
        clean["meta"] = data["metadata"]


def _require_object(data) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", details={"body": "Expected an object"})
    return data


# ═════════════════════════════════════════════════════════════════════════════
# Public validators
# ═════════════════════════════════════════════════════════════════════════════


def validate_create_payload(data: Any) -> dict:
    """Validate a create request; ``phases`` defaults to ``[]``."""
    data = _require_object(data)
    errors: dict[str, str] = {}
    clean: dict[str, Any] = {"name": _check_name(data.get("name"), "name", "Name", errors)}
    _check_common(data, clean, errors)
    clean["phases"] = _check_phases(data.get("phases") or [], errors, allow_id=False)
    if errors:
        raise ValidationError("Invalid workflow payload", details=errors)
    return clean


def validate_update_payload(data: Any) -> dict:
    """Validate a partial update.

    Only keys present in the input appear in the result. ``phases`` is
    present only when supplied, in which case it is the full desired list.
    """
    data = _require_object(data)
    errors: dict[str, str] = {}
    clean: dict[str, Any] = {}
    if "name" in data:
        clean["name"] = _check_name(data["name"], "name", "Name", errors)
    _check_common(data, clean, errors)
    if data.get("phases") is not None:
        clean["phases"] = _check_phases(data["phases"], errors, allow_id=True)
    if errors:
        raise ValidationError("Invalid workflow payload", details=errors)
    return clean


def validate_ids_payload(data: Any) -> list[str]:
    """``{"ids": ["...", ...]}`` → list of ids."""
    data = _require_object(data)
    ids = data.get("ids")
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise ValidationError("Invalid bulk delete payload", details={"ids": "Must be a list of strings"})
    return ids


def validate_pagination(page_raw, limit_raw, *, default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    """Parse 1-indexed ``page`` / ``limit`` query values."""
    errors = {}
    page, limit = 1, default_limit
    if page_raw not in (None, ""):
        try:
            page = int(page_raw)
            if page < 1:
                raise ValueError
        except (TypeError, ValueError):
            errors["page"] = "Page must be a positive integer"
    if limit_raw not in (None, ""):
        try:
            limit = int(limit_raw)
            if limit < 1:
                raise ValueError
        except (TypeError, ValueError):
            errors["limit"] = "Limit must be a positive integer"
    if errors:
        raise ValidationError("Invalid pagination parameters", details=errors)
    return page, min(limit, max_limit)
