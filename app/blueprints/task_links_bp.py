"""
Task Links Blueprint — typed links between work items.

Endpoints:
  GET    /api/v1/pm/task-links/task/<item_id>       — outgoing + incoming links
  POST   /api/v1/pm/task-links                      — create a link
  DELETE /api/v1/pm/task-links/<link_id>            — delete a link
  GET    /api/v1/pm/task-links/available/<item_id>  — items this one can link to

Access (workspace relationship, then permission) and the cycle guard are
enforced in ``task_link_service``; this module only parses input.
"""

from flask import Blueprint, current_app, jsonify, request

from app.middleware.permission_required import current_context, require_auth
from app.services import task_link_service
from app.utils.errors import E, api_error

task_links_bp = Blueprint("task_links_bp", __name__, url_prefix="/api/v1/pm/task-links")


@task_links_bp.route("/task/<int:item_id>", methods=["GET"])
@require_auth
def list_links(item_id):
    return jsonify(task_link_service.list_links(current_context(), item_id)), 200


@task_links_bp.route("", methods=["POST"])
@require_auth
def create_link():
    """
    Body: { "source_id": 1, "target_id": 2, "link_type": "blocks" }

    ``source_task_id`` / ``target_task_id`` are accepted as aliases.
    """
    data = request.get_json(silent=True) or {}
    source_id = data.get("source_id", data.get("source_task_id"))
    target_id = data.get("target_id", data.get("target_task_id"))
    link_type = data.get("link_type")

    if source_id is None or target_id is None or not link_type:
        return api_error(E.VALIDATION_REQUIRED, "source_id, target_id and link_type are required")
    if not isinstance(source_id, int) or not isinstance(target_id, int):
        return api_error(E.VALIDATION_INVALID, "source_id and target_id must be integers")

    link = task_link_service.create_link(
        current_context(),
        source_id,
        target_id,
        link_type,
        max_depth=current_app.config.get("LINK_DEPTH_LIMIT", 10),
    )
    return jsonify(link.to_dict()), 201


@task_links_bp.route("/<int:link_id>", methods=["DELETE"])
@require_auth
def delete_link(link_id):
    task_link_service.delete_link(current_context(), link_id)
    return jsonify({"message": "Task link deleted"}), 200


@task_links_bp.route("/available/<int:item_id>", methods=["GET"])
@require_auth
def available(item_id):
    search = request.args.get("search", "").strip() or None
    items = task_link_service.list_available(current_context(), item_id, search=search)
    return jsonify({"items": items, "total": len(items)}), 200
