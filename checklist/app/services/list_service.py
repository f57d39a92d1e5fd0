"""
services/list_service.py: list lifecycle and membership business logic.

Role checks (owner / member) happen before these functions run, in
middleware/authorize.py. Functions here receive the already-resolved list
where the route has one, and enforce the remaining rules:

  - Soft-deleted lists are invisible to get_list (404)
  - Members are added by username; duplicates are rejected (409)
  - The owner cannot leave their own list (400)

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility: only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.orm import Session

from checklist.app.clock import utcnow
from checklist.app.errors import AppError, ErrorCode
from checklist.app.models.item import Item
from checklist.app.models.list_member import ListMember
from checklist.app.models.todo_list import TodoList
from checklist.app.models.user import User, UserStatus
from checklist.app.services.item_service import build_item_dict

logger = logging.getLogger(__name__)

LIST_FILTERS = ("all", "active", "archived", "deleted")


# ── Private helpers ────────────────────────────────────────────────────────

def _build_member_dict(user: User) -> dict:
    status = user.status.value if isinstance(user.status, UserStatus) else user.status
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "status": status,
    }


def build_list_dict(todo_list: TodoList, with_items: bool = True) -> dict:
    """Serialises a list with its members (and items unless told otherwise)."""
    payload = {
        "id": todo_list.id,
        "title": todo_list.title,
        "owner_user_id": todo_list.owner_user_id,
        "is_archived": todo_list.is_archived,
        "deleted_at": todo_list.deleted_at.isoformat() if todo_list.deleted_at else None,
        "created_at": todo_list.created_at.isoformat(),
        "updated_at": todo_list.updated_at.isoformat(),
        "members": [_build_member_dict(m.user) for m in todo_list.memberships],
    }
    if with_items:
        payload["items"] = [build_item_dict(i) for i in todo_list.items]
    return payload


def _filter_for(user_id: int, list_type: str):
    """WHERE clause for get_lists(); membership is always required."""
    is_member = TodoList.id.in_(
        select(ListMember.list_id).where(ListMember.user_id == user_id)
    )
    live = TodoList.deleted_at.is_(None)
    owned = TodoList.owner_user_id == user_id

    if list_type == "active":
        return and_(is_member, live, TodoList.is_archived.is_(False))
    if list_type == "archived":
        return and_(is_member, live, TodoList.is_archived.is_(True), owned)
    if list_type == "deleted":
        return and_(is_member, TodoList.deleted_at.is_not(None), owned)
    # "all": live lists, hiding archived lists the caller does not own.
    return and_(is_member, live, or_(owned, TodoList.is_archived.is_(False)))


def _find_membership(list_id: int, user_id: int, session: Session) -> ListMember | None:
    return session.execute(
        select(ListMember).where(
            ListMember.list_id == list_id,
            ListMember.user_id == user_id,
        )
    ).scalar_one_or_none()


# ── Public service functions ───────────────────────────────────────────────

def create_list(title: str, owner_id: int, session: Session) -> dict:
    """
    Creates a new list. The creator becomes the owner and the first member.

    Raises:
      AppError(USER_NOT_FOUND, 404): the owner no longer exists.
    """
    owner = session.get(User, owner_id)
    if owner is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            "Owner does not exist.",
            404,
        )

    todo_list = TodoList(title=title.strip(), owner_user_id=owner_id)
    todo_list.memberships.append(ListMember(user_id=owner_id))
    session.add(todo_list)
    session.flush()

    logger.info("User %s created list %s.", owner_id, todo_list.id)
    return build_list_dict(todo_list)


def get_lists(
        user_id: int,
        session: Session,
        list_type: str = "all",
        page: int = 1,
        limit: int = 10,
) -> dict:
    """
    Returns one page of the caller's lists for the given filter.

    Filters:
      all     : live lists; archived ones only if the caller owns them
      active  : live, not archived
      archived: live, archived, owned by the caller
      deleted : soft-deleted, owned by the caller
    """
    where = _filter_for(user_id, list_type)

    total = session.execute(
        select(func.count()).select_from(TodoList).where(where)
    ).scalar_one()

    lists = session.execute(
        select(TodoList)
        .where(where)
        .order_by(TodoList.created_at.desc(), TodoList.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()

    return {
        "lists": [build_list_dict(tl) for tl in lists],
        "total": total,
        "page": page,
        "limit": limit,
    }


def get_list(todo_list: TodoList) -> dict:
    """
    Raises:
      AppError(LIST_NOT_FOUND, 404): the list is soft-deleted.
    """
    if todo_list.deleted_at is not None:
        raise AppError(
            ErrorCode.LIST_NOT_FOUND,
            "List not found.",
            404,
        )
    return build_list_dict(todo_list)


def update_title(todo_list: TodoList, title: str, session: Session) -> dict:
    todo_list.title = title.strip()
    session.flush()
    return build_list_dict(todo_list)


def soft_delete_list(todo_list: TodoList, session: Session) -> dict:
    todo_list.deleted_at = utcnow()
    session.flush()
    logger.info("List %s moved to trash.", todo_list.id)
    return build_list_dict(todo_list, with_items=False)


def restore_deleted_list(todo_list: TodoList, session: Session) -> dict:
    todo_list.deleted_at = None
    session.flush()
    return build_list_dict(todo_list, with_items=False)


def set_archived(todo_list: TodoList, archived: bool, session: Session) -> dict:
    todo_list.is_archived = archived
    session.flush()
    return build_list_dict(todo_list, with_items=False)


def permanently_delete_list(todo_list: TodoList, session: Session) -> dict:
    """Deletes the list together with its items and memberships."""
    list_id = todo_list.id
    session.delete(todo_list)
    session.flush()
    logger.info("List %s permanently deleted.", list_id)
    return {"id": list_id, "deleted": True}


def permanently_delete_all_deleted(owner_id: int, session: Session) -> dict:
    """Empties the caller's trash. Returns {"deleted_count": n}."""
    list_ids = session.execute(
        select(TodoList.id).where(
            TodoList.owner_user_id == owner_id,
            TodoList.deleted_at.is_not(None),
        )
    ).scalars().all()

    if not list_ids:
        return {"deleted_count": 0}

    # Bulk deletes bypass ORM cascades, so children go first.
    session.execute(delete(Item).where(Item.list_id.in_(list_ids)))
    session.execute(delete(ListMember).where(ListMember.list_id.in_(list_ids)))
    session.execute(delete(TodoList).where(TodoList.id.in_(list_ids)))
    session.flush()

    logger.info("User %s emptied trash: %s lists.", owner_id, len(list_ids))
    return {"deleted_count": len(list_ids)}


def get_active_item_counts(user_id: int, list_ids: list[int], session: Session) -> list[dict]:
    """Item counts for the active lists among `list_ids` the caller belongs to."""
    is_member = TodoList.id.in_(
        select(ListMember.list_id).where(ListMember.user_id == user_id)
    )
    rows = session.execute(
        select(TodoList.id, TodoList.title, func.count(Item.id))
        .outerjoin(Item, Item.list_id == TodoList.id)
        .where(
            TodoList.id.in_(list_ids),
            is_member,
            TodoList.is_archived.is_(False),
            TodoList.deleted_at.is_(None),
        )
        .group_by(TodoList.id, TodoList.title)
        .order_by(TodoList.id)
    ).all()

    return [
        {"list_id": list_id, "title": title, "item_count": count}
        for list_id, title, count in rows
    ]


def get_members(todo_list: TodoList) -> list[dict]:
    return [
        {
            **_build_member_dict(m.user),
            "profile_picture": m.user.profile_picture,
            "bio": m.user.bio,
        }
        for m in todo_list.memberships
    ]


def add_member(todo_list: TodoList, username: str, session: Session) -> dict:
    """
    Adds a user to the list by username.

    Raises:
      AppError(USER_NOT_FOUND, 404): no such username
      AppError(ALREADY_MEMBER, 409): user is already in the list
    """
    user = session.execute(
        select(User).where(User.username == username.strip())
    ).scalar_one_or_none()
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User '{username}' not found.",
            404,
            field="username",
        )

    if _find_membership(todo_list.id, user.id, session) is not None:
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            f"User '{username}' is already a member of the list.",
            409,
            field="username",
        )

    todo_list.memberships.append(ListMember(user_id=user.id))
    session.flush()

    logger.info("User %s added to list %s.", user.id, todo_list.id)
    return build_list_dict(todo_list)


def remove_member(todo_list: TodoList, member_id: int, session: Session) -> dict:
    """
    Raises:
      AppError(OWNER_CANNOT_LEAVE, 400): member_id is the owner
      AppError(NOT_A_MEMBER, 400): member_id is not in the list
    """
    if todo_list.owner_user_id == member_id:
        raise AppError(
            ErrorCode.OWNER_CANNOT_LEAVE,
            "Owner cannot be removed from the list.",
            400,
        )

    membership = _find_membership(todo_list.id, member_id, session)
    if membership is None:
        raise AppError(
            ErrorCode.NOT_A_MEMBER,
            f"User {member_id} is not a member of the list.",
            400,
        )

    todo_list.memberships.remove(membership)
    session.flush()

    logger.info("User %s removed from list %s.", member_id, todo_list.id)
    return build_list_dict(todo_list)


def leave_list(todo_list: TodoList, user_id: int, session: Session) -> dict:
    """The caller drops their own membership. The owner cannot leave."""
    remove_member(todo_list, user_id, session)
    logger.info("User %s left list %s.", user_id, todo_list.id)
    return {"list_id": todo_list.id, "left": True}
