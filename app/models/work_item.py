"""
Work Item Models — tasks and the typed links between them.

Only ``blocks`` / ``blocked_by`` links form the dependency graph that must
stay acyclic; the other link types are informational.  ``A blocked_by B`` is
the same dependency as ``B blocks A``.
"""

from datetime import datetime, timezone

from app.models import db

LINK_TYPES = ("blocks", "blocked_by", "relates_to", "duplicates", "clones")
BLOCKING_LINK_TYPES = ("blocks", "blocked_by")


class WorkItem(db.Model):
    __tablename__ = "work_items"

    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(
        db.Integer, db.ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    title = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(30), default="todo")
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("ix_work_items_workspace", "workspace_id"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "title": self.title,
            "status": self.status,
        }


class WorkItemLink(db.Model):
    __tablename__ = "work_item_links"

    id = db.Column(db.Integer, primary_key=True)
    source_id = db.Column(
        db.Integer, db.ForeignKey("work_items.id", ondelete="CASCADE"), nullable=False
    )
    target_id = db.Column(
        db.Integer, db.ForeignKey("work_items.id", ondelete="CASCADE"), nullable=False
    )
    link_type = db.Column(db.String(20), nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("source_id", "target_id", "link_type", name="uq_work_item_link"),
        db.Index("ix_work_item_links_source", "source_id"),
        db.Index("ix_work_item_links_target", "target_id"),
        db.Index("ix_work_item_links_type", "link_type"),
    )

    source = db.relationship("WorkItem", foreign_keys=[source_id])
    target = db.relationship("WorkItem", foreign_keys=[target_id])

    def to_dict(self):
        return {
            "id": self.id,
            "source_id": self.source_id,
            "source_title": self.source.title if self.source else None,
            "target_id": self.target_id,
            "target_title": self.target.title if self.target else None,
            "link_type": self.link_type,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
