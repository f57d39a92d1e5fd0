"""
services/item_service.py: checklist item business logic.

The owning list has already been resolved and role-checked by
middleware/authorize.py (either from list_id or from the item's own list).

Layer rules:
  - No Flask imports.
  - Commits are the route's responsibility: only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from checklist.app.errors import AppError, ErrorCode
from checklist.app.models.item import Item
from checklist.app.models.todo_list import TodoList

logger = logging.getLogger(__name__)

STATUS_FILTERS = {
    "resolved": True,
    "unresolved": False,
}


def build_item_dict(item: Item) -> dict:
    return {
        "id": item.id,
        "list_id": item.list_id,
        "item_text": item.item_text,
        "is_resolved": item.is_resolved,
        "created_at": item.created_at.isoformat(),
        "updated_at": item.updated_at.isoformat(),
    }


def _get_item_or_404(item_id: int, list_id: int, session: Session) -> Item:
    item = session.execute(
        select(Item).where(Item.id == item_id, Item.list_id == list_id)
    ).scalar_one_or_none()
    if item is None:
        raise AppError(
            ErrorCode.ITEM_NOT_FOUND,
            "Item not found.",
            404,
        )
    return item


def add_item(todo_list: TodoList, item_text: str, session: Session) -> dict:
    item = Item(item_text=item_text.strip())
    todo_list.items.append(item)
    session.flush()

    logger.info("Item %s added to list %s.", item.id, todo_list.id)
    return build_item_dict(item)


def get_items(todo_list: TodoList, session: Session, status: str | None = None) -> list[dict]:
    """
    Items of the list, unresolved first, newest first within each group.

    Raises:
      AppError(INVALID_STATUS_FILTER, 400): status is not resolved/unresolved
    """
    stmt = select(Item).where(Item.list_id == todo_list.id)

    if status:
        if status not in STATUS_FILTERS:
            raise AppError(
                ErrorCode.INVALID_STATUS_FILTER,
                "Invalid status filter. Use 'resolved' or 'unresolved'.",
                400,
                field="status",
            )
        stmt = stmt.where(Item.is_resolved.is_(STATUS_FILTERS[status]))

    items = session.execute(
        stmt.order_by(Item.is_resolved.asc(), Item.created_at.desc(), Item.id.desc())
    ).scalars().all()
    return [build_item_dict(i) for i in items]


def set_resolved(todo_list: TodoList, item_id: int, is_resolved: bool, session: Session) -> dict:
    item = _get_item_or_404(item_id, todo_list.id, session)
    item.is_resolved = is_resolved
    session.flush()
    return build_item_dict(item)


def delete_item(todo_list: TodoList, item_id: int, session: Session) -> dict:
    item = _get_item_or_404(item_id, todo_list.id, session)
    payload = build_item_dict(item)
    todo_list.items.remove(item)
    session.flush()

    logger.info("Item %s deleted from list %s.", item_id, todo_list.id)
    return payload
