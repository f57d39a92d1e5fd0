"""
routes/lists.py: List and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - Role checks live in @authorize; the resolved list arrives on g.todo_list.

Endpoints (base url_prefix=/api/v1/lists):
  GET    /                                → 200  caller's lists (filter + paging)
  POST   /                                → 201  create list
  POST   /item-counts                     → 200  item counts for active lists
  DELETE /deleted                         → 200  empty the caller's trash
  GET    /:id                             → 200  list + members + items (owner, member)
  PATCH  /:id                             → 200  rename (owner)
  DELETE /:id                             → 200  soft delete (owner)
  POST   /:id/restore                     → 200  undo soft delete (owner)
  POST   /:id/archive                     → 200  (owner)
  POST   /:id/unarchive                   → 200  (owner)
  DELETE /:id/permanent                   → 200  hard delete (owner)
  GET    /:id/members                     → 200  (owner, member)
  POST   /:id/members                     → 201  add by username (owner)
  DELETE /:id/members/me                  → 200  leave (member)
  DELETE /:id/members/:uid                → 200  remove member (owner)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from checklist.app.extensions import db
from checklist.app.middleware.auth_middleware import require_auth
from checklist.app.middleware.authorize import MEMBER, OWNER, authorize
from checklist.app.schemas.list_schema import (
    AddMemberSchema,
    CreateListSchema,
    ItemCountsSchema,
    ListQuerySchema,
    UpdateListSchema,
)
from checklist.app.services import list_service

lists_bp = Blueprint("lists", __name__)


def _success(data, status_code: int = 200):
    return jsonify({"status": "success", "data": data}), status_code


@lists_bp.route("/", methods=["GET"])
@require_auth
def get_lists():
    """GET /lists?type=all|active|archived|deleted&page=&limit="""
    query = ListQuerySchema().load(request.args.to_dict())
    result = list_service.get_lists(
        user_id=g.user_id,
        session=db.session,
        list_type=query["type"],
        page=query["page"],
        limit=query["limit"],
    )
    return _success(result)


@lists_bp.route("/", methods=["POST"])
@require_auth
def create_list():
    """POST /lists: Caller becomes owner and first member."""
    data = CreateListSchema().load(request.get_json(force=True, silent=True) or {})
    result = list_service.create_list(
        title=data["title"],
        owner_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return _success(result, 201)


@lists_bp.route("/item-counts", methods=["POST"])
@require_auth
def item_counts():
    data = ItemCountsSchema().load(request.get_json(force=True, silent=True) or {})
    result = list_service.get_active_item_counts(
        user_id=g.user_id,
        list_ids=data["list_ids"],
        session=db.session,
    )
    return _success(result)


@lists_bp.route("/deleted", methods=["DELETE"])
@require_auth
def empty_trash():
    """DELETE /lists/deleted: Permanently delete every soft-deleted list the caller owns."""
    result = list_service.permanently_delete_all_deleted(g.user_id, db.session)
    db.session.commit()
    return _success(result)


@lists_bp.route("/<int:list_id>", methods=["GET"])
@require_auth
@authorize(OWNER, MEMBER)
def get_list(list_id: int):
    return _success(list_service.get_list(g.todo_list))


@lists_bp.route("/<int:list_id>", methods=["PATCH"])
@require_auth
@authorize(OWNER)
def update_list(list_id: int):
    data = UpdateListSchema().load(request.get_json(force=True, silent=True) or {})
    result = list_service.update_title(g.todo_list, data["title"], db.session)
    db.session.commit()
    return _success(result)


@lists_bp.route("/<int:list_id>", methods=["DELETE"])
@require_auth
@authorize(OWNER)
def soft_delete_list(list_id: int):
    """DELETE /lists/:id: Move to trash. Restorable until permanently deleted."""
    result = list_service.soft_delete_list(g.todo_list, db.session)
    db.session.commit()
    return _success(result)


@lists_bp.route("/<int:list_id>/restore", methods=["POST"])
@require_auth
@authorize(OWNER)
def restore_list(list_id: int):
    result = list_service.restore_deleted_list(g.todo_list, db.session)
    db.session.commit()
    return _success(result)


@lists_bp.route("/<int:list_id>/archive", methods=["POST"])
@require_auth
@authorize(OWNER)
def archive_list(list_id: int):
    result = list_service.set_archived(g.todo_list, True, db.session)
    db.session.commit()
    return _success(result)


@lists_bp.route("/<int:list_id>/unarchive", methods=["POST"])
@require_auth
@authorize(OWNER)
def unarchive_list(list_id: int):
    result = list_service.set_archived(g.todo_list, False, db.session)
    db.session.commit()
    return _success(result)


@lists_bp.route("/<int:list_id>/permanent", methods=["DELETE"])
@require_auth
@authorize(OWNER)
def permanently_delete_list(list_id: int):
    result = list_service.permanently_delete_list(g.todo_list, db.session)
    db.session.commit()
    return _success(result)


@lists_bp.route("/<int:list_id>/members", methods=["GET"])
@require_auth
@authorize(OWNER, MEMBER)
def get_members(list_id: int):
    return _success(list_service.get_members(g.todo_list))


@lists_bp.route("/<int:list_id>/members", methods=["POST"])
@require_auth
@authorize(OWNER)
def add_member(list_id: int):
    """POST /lists/:id/members: Add a user by username. Owner only."""
    data = AddMemberSchema().load(request.get_json(force=True, silent=True) or {})
    result = list_service.add_member(g.todo_list, data["username"], db.session)
    db.session.commit()
    return _success(result, 201)


@lists_bp.route("/<int:list_id>/members/me", methods=["DELETE"])
@require_auth
@authorize(MEMBER)
def leave_list(list_id: int):
    """DELETE /lists/:id/members/me: Caller leaves the list. The owner cannot."""
    result = list_service.leave_list(g.todo_list, g.user_id, db.session)
    db.session.commit()
    return _success(result)


@lists_bp.route("/<int:list_id>/members/<int:user_id>", methods=["DELETE"])
@require_auth
@authorize(OWNER)
def remove_member(list_id: int, user_id: int):
    result = list_service.remove_member(g.todo_list, user_id, db.session)
    db.session.commit()
    return _success(result)
