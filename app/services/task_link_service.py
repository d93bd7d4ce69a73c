"""
Task Link Service — create, delete and list links between work items.

Every operation resolves the work item's workspace, runs the workspace
relationship check, then the module permission check, in that order.
Link creation runs the dependency-graph validator right before the insert.
"""

import logging

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import DuplicateLink, NotFoundError, ValidationError
from app.core.grants import Action, Module
from app.models import db
from app.models.work_item import LINK_TYPES, WorkItem, WorkItemLink
from app.services import access_service, dependency_graph

logger = logging.getLogger(__name__)

AVAILABLE_LIMIT = 50


def _get_item(item_id: int) -> WorkItem:
    item = db.session.get(WorkItem, item_id)
    if item is None:
        raise NotFoundError(resource="Task", resource_id=item_id)
    return item


def _authorize(ctx, workspace_id: int, *, mutation: bool) -> None:
    access_service.require_workspace_access(ctx, workspace_id, mutation=mutation).raise_if_denied()
    action = Action.EDIT if mutation else Action.VIEW
    access_service.require_permission(ctx, Module.PROJECTS, action).raise_if_denied()


def create_link(
    ctx,
    source_id: int,
    target_id: int,
    link_type: str,
    *,
    max_depth: int = dependency_graph.DEFAULT_MAX_DEPTH,
) -> WorkItemLink:
    """Validate and persist a link; raises on any access or graph conflict."""
    if link_type not in LINK_TYPES:
        raise ValidationError(
            "Invalid link type", details={"link_type": f"must be one of {', '.join(LINK_TYPES)}"}
        )
    if source_id == target_id:
        dependency_graph.LinkCheck(
            False, dependency_graph.INVALID_LINK, "Cannot link a task to itself"
        ).raise_for_conflict()

    source = db.session.get(WorkItem, source_id)
    target = db.session.get(WorkItem, target_id)
    if source is None or target is None:
        raise NotFoundError(resource="Task", resource_id=source_id if source is None else target_id)
    if source.workspace_id != target.workspace_id:
        raise ValidationError("Tasks must be in the same workspace")

    _authorize(ctx, source.workspace_id, mutation=True)

    dependency_graph.can_insert(
        source_id, target_id, link_type, max_depth=max_depth
    ).raise_for_conflict()

    link = WorkItemLink(
        source_id=source_id,
        target_id=target_id,
        link_type=link_type,
        created_by=ctx.user_id,
    )
    db.session.add(link)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning(
            "Duplicate link on insert: %s %s %s (user=%s)",
            source_id, link_type, target_id, ctx.user_id,
        )
        raise DuplicateLink("This link already exists")
    logger.info(
        "Link %s created: %s %s %s (user=%s)",
        link.id, source_id, link_type, target_id, ctx.user_id,
    )
    return link


def delete_link(ctx, link_id: int) -> None:
    link = db.session.get(WorkItemLink, link_id)
    if link is None:
        raise NotFoundError(resource="Task link", resource_id=link_id)
    _authorize(ctx, link.source.workspace_id, mutation=True)
    db.session.delete(link)
    db.session.commit()
    logger.info("Link %s deleted (user=%s)", link_id, ctx.user_id)


def list_links(ctx, item_id: int) -> dict:
    """Links touching ``item_id``, split into outgoing and incoming."""
    item = _get_item(item_id)
    _authorize(ctx, item.workspace_id, mutation=False)

    links = db.session.execute(
        sa.select(WorkItemLink)
        .where(sa.or_(WorkItemLink.source_id == item_id, WorkItemLink.target_id == item_id))
        .order_by(WorkItemLink.created_at.desc(), WorkItemLink.id.desc())
    ).scalars().all()

    return {
        "outgoing": [lnk.to_dict() for lnk in links if lnk.source_id == item_id],
        "incoming": [lnk.to_dict() for lnk in links if lnk.target_id == item_id],
    }


def list_available(ctx, item_id: int, search: str | None = None, limit: int = AVAILABLE_LIMIT) -> list[dict]:
    """Other items in the same workspace that ``item_id`` could link to."""
    item = _get_item(item_id)
    _authorize(ctx, item.workspace_id, mutation=False)

    stmt = sa.select(WorkItem).where(
        WorkItem.workspace_id == item.workspace_id, WorkItem.id != item_id
    )
    if search:
        stmt = stmt.where(WorkItem.title.ilike(f"%{search}%"))
    rows = db.session.execute(stmt.order_by(WorkItem.id.desc()).limit(limit)).scalars().all()
    return [r.to_dict() for r in rows]
