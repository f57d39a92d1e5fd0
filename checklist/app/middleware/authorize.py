"""
middleware/authorize.py: role gate for list- and item-scoped routes.

@authorize("owner", "member") resolves the list the request is about and
lets the caller through if either:
  - the caller owns the list and "owner" is accepted, or
  - the caller is in the list's members and "member" is accepted.

Ownership and membership are checked independently. A list's creator is
added to its members when the list is created, but nothing here relies on
that: an owner who is not in the members set only passes "owner" gates.

Resolution uses the matched route's view args:
  list_id  → lists row                     → LIST_NOT_FOUND (404)
  item_id  → items row, then its list      → ITEM_NOT_FOUND (404)
  neither  → INVALID_RESOURCE_IDENTIFIER (400)
When both are present, list_id wins. Lookup errors propagate unchanged.

Must be stacked under @require_auth so flask.g.user_id is set.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable

from flask import g, request
from sqlalchemy.orm import Session

from checklist.app.errors import AppError, ErrorCode
from checklist.app.extensions import db
from checklist.app.models.item import Item
from checklist.app.models.todo_list import TodoList

logger = logging.getLogger(__name__)

OWNER = "owner"
MEMBER = "member"
ROLES = frozenset({OWNER, MEMBER})


def _resolve_list(
        session: Session,
        list_id: int | None,
        item_id: int | None,
) -> TodoList:
    if list_id is not None:
        todo_list = session.get(TodoList, list_id)
        if todo_list is None:
            logger.warning("List %s not found.", list_id)
            raise AppError(
                ErrorCode.LIST_NOT_FOUND,
                "List not found.",
                404,
            )
        return todo_list

    if item_id is not None:
        item = session.get(Item, item_id)
        if item is None:
            logger.warning("Item %s not found.", item_id)
            raise AppError(
                ErrorCode.ITEM_NOT_FOUND,
                "Item not found.",
                404,
            )
        return item.todo_list

    logger.warning("No resource identifier in request.")
    raise AppError(
        ErrorCode.INVALID_RESOURCE_IDENTIFIER,
        "Invalid resource identifier.",
        400,
    )


def resolve_access(
        caller_id: int,
        roles: frozenset[str] | set[str],
        session: Session,
        list_id: int | None = None,
        item_id: int | None = None,
) -> TodoList:
    """
    Returns the list the caller may act on, or raises.

    Raises:
      AppError(INVALID_RESOURCE_IDENTIFIER, 400)
      AppError(LIST_NOT_FOUND, 404) / AppError(ITEM_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403): caller holds none of the accepted roles
    """
    todo_list = _resolve_list(session, list_id, item_id)

    is_owner = todo_list.owner_user_id == caller_id
    is_member = caller_id in todo_list.member_ids

    if is_owner and OWNER in roles:
        logger.info("User %s has owner access to list %s.", caller_id, todo_list.id)
        return todo_list

    if is_member and MEMBER in roles:
        logger.info("User %s has member access to list %s.", caller_id, todo_list.id)
        return todo_list

    logger.warning(
        "User %s denied on list %s (owner=%s, member=%s, accepted=%s).",
        caller_id, todo_list.id, is_owner, is_member, sorted(roles),
    )
    raise AppError(
        ErrorCode.FORBIDDEN,
        "You do not have permission to perform this action.",
        403,
    )


def authorize(*roles: str) -> Callable:
    """
    Decorator factory. Attaches the resolved list to flask.g.todo_list.

    Usage:
        @lists_bp.route("/<int:list_id>", methods=["PATCH"])
        @require_auth
        @authorize("owner")
        def update_list(list_id: int): ...
    """
    unknown = set(roles) - ROLES
    if not roles or unknown:
        raise ValueError(f"authorize() accepts roles from {sorted(ROLES)}, got {roles!r}")
    accepted = frozenset(roles)

    def decorator(f: Callable) -> Callable:
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            view_args = request.view_args or {}
            g.todo_list = resolve_access(
                caller_id=g.user_id,
                roles=accepted,
                session=db.session,
                list_id=view_args.get("list_id"),
                item_id=view_args.get("item_id"),
            )
            return f(*args, **kwargs)

        return decorated

    return decorator
