"""
routes/items.py: Checklist item route handlers.

items_bp is registered at /api/v1 (not /api/v1/items) because it owns both
/lists/<id>/items (create/list) and /items/<id> (resolve/delete).

Every endpoint requires list membership (owner or member); for /items/<id>
the list is resolved from the item.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from checklist.app.extensions import db
from checklist.app.middleware.auth_middleware import require_auth
from checklist.app.middleware.authorize import MEMBER, OWNER, authorize
from checklist.app.schemas.item_schema import CreateItemSchema, ResolveItemSchema
from checklist.app.services import item_service

items_bp = Blueprint("items", __name__)


@items_bp.route("/lists/<int:list_id>/items", methods=["POST"])
@require_auth
@authorize(OWNER, MEMBER)
def add_item(list_id: int):
    data = CreateItemSchema().load(request.get_json(force=True, silent=True) or {})
    result = item_service.add_item(g.todo_list, data["item_text"], db.session)
    db.session.commit()
    return jsonify({"status": "success", "data": result}), 201


@items_bp.route("/lists/<int:list_id>/items", methods=["GET"])
@require_auth
@authorize(OWNER, MEMBER)
def get_items(list_id: int):
    """GET /lists/:id/items?status=resolved|unresolved: unresolved first, newest first."""
    result = item_service.get_items(
        g.todo_list,
        db.session,
        status=request.args.get("status"),
    )
    return jsonify({"status": "success", "data": result}), 200


@items_bp.route("/items/<int:item_id>", methods=["PATCH"])
@require_auth
@authorize(OWNER, MEMBER)
def resolve_item(item_id: int):
    data = ResolveItemSchema().load(request.get_json(force=True, silent=True) or {})
    result = item_service.set_resolved(g.todo_list, item_id, data["is_resolved"], db.session)
    db.session.commit()
    return jsonify({"status": "success", "data": result}), 200


@items_bp.route("/items/<int:item_id>", methods=["DELETE"])
@require_auth
@authorize(OWNER, MEMBER)
def delete_item(item_id: int):
    result = item_service.delete_item(g.todo_list, item_id, db.session)
    db.session.commit()
    return jsonify({"status": "success", "data": result}), 200
