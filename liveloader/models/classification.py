"""Classification tree models (artist and show nodes)."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from liveloader.database import Base


class ClassificationNode(Base):
    """Grouping node. Artist nodes are roots, show nodes are their children."""

    __tablename__ = "classification_nodes"
    __table_args__ = (
        UniqueConstraint('parent_id', 'external_identifier', name='uq_node_parent_identifier'),
    )

    id = Column(Integer, primary_key=True, index=True)
    parent_id = Column(Integer, ForeignKey("classification_nodes.id", ondelete="CASCADE"), index=True)
    name = Column(String(255), nullable=False)
    url_key = Column(String(64))
    level = Column(Integer, default=1)
    external_identifier = Column(String(255), index=True)  # show identifier for show nodes
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    parent = relationship("ClassificationNode", remote_side=[id])

    def __repr__(self):
        return f"<ClassificationNode {self.id} {self.name}>"


class EntryNodeLink(Base):
    """Ordered link between a catalog entry and a classification node."""

    __tablename__ = "entry_node_links"
    __table_args__ = (
        UniqueConstraint('entry_id', 'node_id', name='uq_entry_node'),
    )

    id = Column(Integer, primary_key=True, index=True)
    entry_id = Column(Integer, ForeignKey("catalog_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    node_id = Column(Integer, ForeignKey("classification_nodes.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<EntryNodeLink entry={self.entry_id} node={self.node_id} pos={self.position}>"
