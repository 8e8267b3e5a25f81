"""
Workflow Blueprint — CRUD API for workflows and their nested phases/tasks.

Endpoints:
    GET    /api/workflows             — Paginated list (?page, ?limit, ?search)
    POST   /api/workflows             — Create (MANAGER+)
    DELETE /api/workflows             — Bulk delete by ids (ADMIN)
    GET    /api/workflows/<id>        — Detail (phases → tasks)
    PATCH  /api/workflows/<id>        — Partial update / reconcile (MANAGER+)
    DELETE /api/workflows/<id>        — Delete unless projects reference it (ADMIN)

Authentication is enforced by the route guard; role checks for writes are
per-endpoint and run before the body is read.
"""

import logging

from flask import Blueprint, jsonify, request

from workflow_hub.auth import current_identity, require_role
from workflow_hub.models.auth import ROLE_ADMIN, ROLE_MANAGER
from workflow_hub.services import workflow_service
from workflow_hub.services.workflow_schema import validate_pagination
from workflow_hub.utils.errors import register_api_error_handlers

logger = logging.getLogger(__name__)

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api")
register_api_error_handlers(workflow_bp)


def _json_body():
    return request.get_json(silent=True)


# ═════════════════════════════════════════════════════════════════════════════
# COLLECTION
# ═════════════════════════════════════════════════════════════════════════════

@workflow_bp.route("/workflows", methods=["GET"])
def list_workflows():
    """Return one page of workflows with phase/project counts."""
    page, limit = validate_pagination(request.args.get("page"), request.args.get("limit"))
    search = request.args.get("search", "").strip()
    return jsonify(workflow_service.list_workflows(page=page, limit=limit, search=search)), 200


@workflow_bp.route("/workflows", methods=["POST"])
@require_role(ROLE_MANAGER)
def create_workflow():
    """Create a workflow with nested phases and tasks."""
    identity = current_identity()
    workflow = workflow_service.create_workflow(_json_body(), created_by_id=identity["id"])
    return jsonify(workflow_service.serialize_workflow(workflow)), 201


@workflow_bp.route("/workflows", methods=["DELETE"])
@require_role(ROLE_ADMIN)
def bulk_delete_workflows():
    """Delete all listed workflows. Body: {"ids": [...]}."""
    workflow_service.bulk_delete_workflows(_json_body())
    return "", 204


# ═════════════════════════════════════════════════════════════════════════════
# ITEM
# ═════════════════════════════════════════════════════════════════════════════

@workflow_bp.route("/workflows/<workflow_id>", methods=["GET"])
def get_workflow(workflow_id):
    workflow = workflow_service.get_workflow_detail(workflow_id)
    return jsonify(workflow_service.serialize_workflow(workflow)), 200


@workflow_bp.route("/workflows/<workflow_id>", methods=["PATCH"])
@require_role(ROLE_MANAGER)
def update_workflow(workflow_id):
    """Partial update; a supplied ``phases`` list replaces the current one."""
    workflow = workflow_service.update_workflow(workflow_id, _json_body())
    return jsonify(workflow_service.serialize_workflow(workflow)), 200


@workflow_bp.route("/workflows/<workflow_id>", methods=["DELETE"])
@require_role(ROLE_ADMIN)
def delete_workflow(workflow_id):
    workflow_service.delete_workflow(workflow_id)
    return jsonify({"message": "Workflow deleted successfully"}), 200
