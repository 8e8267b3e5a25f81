"""
Pages Blueprint — server-rendered views.

    GET       /                        — redirect to dashboard or login
    GET/POST  /login                   — login form (30-day session cookie)
    GET/POST  /register                — registration form
    POST      /logout                  — clear cookie
    GET       /dashboard               — landing page
    GET       /workflows               — paginated list
    GET/POST  /workflows/new           — create form
    GET       /workflows/<id>          — detail
    GET/POST  /workflows/<id>/edit     — edit form

Role requirements come from the route guard (``/workflows`` needs MANAGER).
Form posts go through the same services and payload shape as the JSON API.
"""

import json
import logging

from flask import Blueprint, g, redirect, render_template, request, url_for

from workflow_hub.core.exceptions import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from workflow_hub.services import workflow_service
from workflow_hub.services.jwt_service import (
    clear_auth_cookie,
    generate_access_token,
    get_session_max_age,
    set_auth_cookie,
)
from workflow_hub.services.user_service import authenticate_user, create_user
from workflow_hub.services.workflow_schema import validate_pagination

logger = logging.getLogger(__name__)

pages_bp = Blueprint("pages", __name__)

LIST_PAGE_SIZE = 10


@pages_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return render_template("workflows/not_found.html"), 404


def _safe_callback(target: str | None) -> str:
    """Only same-site relative paths are followed after login."""
    if target and target.startswith("/") and not target.startswith(("//", "/\\")):
        return target
    return url_for("pages.dashboard")


def _phases_for_form(workflow) -> str:
    """Current phases in the API update shape, pretty-printed for the textarea."""
    phases = [
        {
            "id": phase.id,
            "name": phase.name,
            "order": phase.order,
            "tasks": [
                {
                    "name": task.name,
                    "description": task.description,
                    "priority": task.priority,
                    "manHours": task.man_hours,
                    "formTemplate": task.form_template,
                }
                for task in phase.tasks
            ],
        }
        for phase in workflow.phases
    ]
    return json.dumps(phases, indent=2)


def _workflow_form_payload() -> tuple[dict, dict]:
    """Build an API-shaped payload from the submitted form."""
    form = request.form
    payload = {
        "name": form.get("name", ""),
        "description": form.get("description") or None,
    }
    raw_phases = form.get("phases", "").strip()
    if not raw_phases:
        payload["phases"] = []
        return payload, {}
    try:
        payload["phases"] = json.loads(raw_phases)
    except json.JSONDecodeError as e:
        return payload, {"phases": f"Phases must be valid JSON: {e.msg}"}
    return payload, {}


# ═══════════════════════════════════════════════════════════════
# Auth pages
# ═══════════════════════════════════════════════════════════════
@pages_bp.route("/")
def index():
    if g.current_user:
        return redirect(url_for("pages.dashboard"))
    return redirect(url_for("pages.login"))


@pages_bp.route("/login", methods=["GET", "POST"])
def login():
    callback = request.values.get("callbackUrl")
    if request.method == "GET":
        if g.current_user:
            return redirect(url_for("pages.dashboard"))
        return render_template(
            "login.html",
            error=request.args.get("error"),
            callback_url=callback,
            registered=request.args.get("registered"),
        )

    email = request.form.get("email", "")
    try:
        user = authenticate_user(email, request.form.get("password", ""))
    except InvalidCredentialsError:
        return render_template(
            "login.html", error="CredentialsSignin", callback_url=callback, email=email,
        ), 401

    max_age = get_session_max_age()
    token = generate_access_token(user.identity(), expires_in=max_age)
    response = redirect(_safe_callback(callback))
    return set_auth_cookie(response, token, max_age=max_age)


@pages_bp.route("/register", methods=["GET", "POST"])
def register():
    if request.method == "GET":
        return render_template("register.html", errors={}, form={})

    form = request.form
    try:
        create_user(form.get("name") or None, form.get("email", ""), form.get("password", ""))
    except ValidationError as e:
        return render_template("register.html", errors=e.details, form=form), 400
    except ConflictError as e:
        return render_template("register.html", errors={"email": str(e)}, form=form), 400
    return redirect(url_for("pages.login", registered=1))


@pages_bp.route("/logout", methods=["POST"])
def logout():
    return clear_auth_cookie(redirect(url_for("pages.login")))


# ═══════════════════════════════════════════════════════════════
# Dashboard
# ═══════════════════════════════════════════════════════════════
@pages_bp.route("/dashboard")
def dashboard():
    recent = workflow_service.list_workflows(page=1, limit=5)
    return render_template(
        "dashboard.html",
        user=g.current_user,
        error=request.args.get("error"),
        recent=recent["workflows"],
        total=recent["pagination"]["total"],
    )


# ═══════════════════════════════════════════════════════════════
# Workflow pages
# ═══════════════════════════════════════════════════════════════
@pages_bp.route("/workflows")
def workflow_list():
    search = request.args.get("search", "").strip()
    try:
        page, limit = validate_pagination(request.args.get("page"), None, default_limit=LIST_PAGE_SIZE)
    except ValidationError:
        page, limit = 1, LIST_PAGE_SIZE
    result = workflow_service.list_workflows(page=page, limit=limit, search=search)
    return render_template(
        "workflows/list.html",
        workflows=result["workflows"],
        pagination=result["pagination"],
        search=search,
        user=g.current_user,
    )


@pages_bp.route("/workflows/new", methods=["GET", "POST"])
def workflow_new():
    if request.method == "GET":
        return render_template("workflows/form.html", form={"phases": "[]"}, errors={}, workflow=None)

    payload, errors = _workflow_form_payload()
    if not errors:
        try:
            workflow = workflow_service.create_workflow(payload, created_by_id=g.current_user["id"])
        except ValidationError as e:
            errors = e.details
        else:
            return redirect(url_for("pages.workflow_detail", workflow_id=workflow.id))
    return render_template("workflows/form.html", form=request.form, errors=errors, workflow=None), 400


@pages_bp.route("/workflows/<workflow_id>")
def workflow_detail(workflow_id):
    workflow = workflow_service.get_workflow_detail(workflow_id)
    return render_template(
        "workflows/detail.html",
        workflow=workflow,
        project_count=workflow.projects.count(),
        user=g.current_user,
    )


@pages_bp.route("/workflows/<workflow_id>/edit", methods=["GET", "POST"])
def workflow_edit(workflow_id):
    workflow = workflow_service.get_workflow_detail(workflow_id)
    if request.method == "GET":
        form = {
            "name": workflow.name,
            "description": workflow.description or "",
            "phases": _phases_for_form(workflow),
        }
        return render_template("workflows/form.html", form=form, errors={}, workflow=workflow)

    payload, errors = _workflow_form_payload()
    if not errors:
        try:
            workflow_service.update_workflow(workflow_id, payload)
        except ValidationError as e:
            errors = e.details
        else:
            return redirect(url_for("pages.workflow_detail", workflow_id=workflow_id))
    return render_template("workflows/form.html", form=request.form, errors=errors, workflow=workflow), 400
