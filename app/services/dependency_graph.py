"""
Dependency Graph — cycle guard for ``blocks`` / ``blocked_by`` links.

Blocking links are normalised to a single direction before any graph work:

    A blocks B      →  blocker A, blocked B
    A blocked_by B  →  blocker B, blocked A

Inserting blocker X → blocked Y closes a cycle iff Y already (transitively)
blocks X.  The check walks normalised edges breadth-first from Y, one query
per level, and stops after ``max_depth`` levels so a pathological graph
cannot make a single insert arbitrarily expensive.

Nothing is cached between calls: every ``can_insert`` re-reads the persisted
edges.  Concurrent inserts racing on the same graph are not serialised; the
next validation sees whatever was committed.
"""

import logging
from dataclasses import dataclass

import sqlalchemy as sa

from app.core.exceptions import CyclicDependency, DuplicateLink, InvalidLink
from app.models import db
from app.models.work_item import BLOCKING_LINK_TYPES, WorkItemLink

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10

INVALID_LINK = "invalid_link"
DUPLICATE_LINK = "duplicate_link"
CYCLIC_DEPENDENCY = "cyclic_dependency"

_CONFLICTS = {
    INVALID_LINK: InvalidLink,
    DUPLICATE_LINK: DuplicateLink,
    CYCLIC_DEPENDENCY: CyclicDependency,
}


@dataclass(frozen=True)
class LinkCheck:
    ok: bool
    reason: str | None = None
    message: str | None = None

    def __bool__(self) -> bool:
        return self.ok

    def raise_for_conflict(self) -> None:
        if self.ok:
            return
        raise _CONFLICTS[self.reason](self.message)


OK = LinkCheck(True)


def normalize(source_id: int, target_id: int, link_type: str) -> tuple[int, int]:
    """Return ``(blocker, blocked)`` for a blocking link."""
    if link_type == "blocked_by":
        return target_id, source_id
    return source_id, target_id


def _edge_exists(source_id: int, target_id: int, link_type: str) -> bool:
    return db.session.execute(
        sa.select(WorkItemLink.id).where(
            WorkItemLink.source_id == source_id,
            WorkItemLink.target_id == target_id,
            WorkItemLink.link_type == link_type,
        )
    ).first() is not None


def _normalized_edge_exists(blocker: int, blocked: int) -> bool:
    """True if any stored link says ``blocker`` blocks ``blocked``."""
    return db.session.execute(
        sa.select(WorkItemLink.id).where(
            sa.or_(
                sa.and_(
                    WorkItemLink.source_id == blocker,
                    WorkItemLink.target_id == blocked,
                    WorkItemLink.link_type == "blocks",
                ),
                sa.and_(
                    WorkItemLink.source_id == blocked,
                    WorkItemLink.target_id == blocker,
                    WorkItemLink.link_type == "blocked_by",
                ),
            )
        )
    ).first() is not None


def blocked_by_any(frontier: set[int]) -> set[int]:
    """Items directly blocked by any item in ``frontier``."""
    if not frontier:
        return set()
    rows = db.session.execute(
        sa.select(WorkItemLink.target_id).where(
            WorkItemLink.source_id.in_(sorted(frontier)), WorkItemLink.link_type == "blocks"
        ).union(
            sa.select(WorkItemLink.source_id).where(
                WorkItemLink.target_id.in_(sorted(frontier)), WorkItemLink.link_type == "blocked_by"
            )
        )
    ).all()
    return {r[0] for r in rows}


def reaches(start: int, goal: int, max_depth: int = DEFAULT_MAX_DEPTH) -> bool:
    """Whether ``start`` blocks ``goal`` within ``max_depth`` edge levels."""
    visited = {start}
    frontier = {start}
    for _ in range(max_depth):
        nxt = blocked_by_any(frontier) - visited
        if goal in nxt:
            return True
        if not nxt:
            return False
        visited |= nxt
        frontier = nxt
    return False


def can_insert(
    source_id: int,
    target_id: int,
    link_type: str,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> LinkCheck:
    """
    Validate a new link before it is persisted.

    Checks, in order (first failure wins):
      1. self-loop                              → invalid_link
      2. identical (source, target, type) row   → duplicate_link
      3. same blocking dependency, other type   → duplicate_link
      4. direct inverse blocking dependency     → cyclic_dependency
      5. target already blocks source within
         ``max_depth`` levels                   → cyclic_dependency

    Non-blocking link types only go through checks 1 and 2.
    """
    if source_id == target_id:
        return LinkCheck(False, INVALID_LINK, "Cannot link a task to itself")

    if _edge_exists(source_id, target_id, link_type):
        return LinkCheck(False, DUPLICATE_LINK, "This link already exists")

    if link_type not in BLOCKING_LINK_TYPES:
        return OK

    blocker, blocked = normalize(source_id, target_id, link_type)

    if _normalized_edge_exists(blocker, blocked):
        return LinkCheck(
            False, DUPLICATE_LINK,
            "An equivalent blocking link already exists between these tasks",
        )

    if _normalized_edge_exists(blocked, blocker):
        logger.info("Cycle rejected: %s ⇄ %s (direct inverse)", blocker, blocked)
        return LinkCheck(False, CYCLIC_DEPENDENCY, "Cannot create circular dependency")

    if reaches(blocked, blocker, max_depth):
        logger.info("Cycle rejected: %s already blocks %s transitively", blocked, blocker)
        return LinkCheck(False, CYCLIC_DEPENDENCY, "Cannot create circular dependency")

    return OK
