"""Attribute option model."""
from sqlalchemy import Column, Integer, String, UniqueConstraint
from liveloader.database import Base


class AttributeOption(Base):
    """(attribute code, label) -> integer option code lookup row."""

    __tablename__ = "attribute_options"
    __table_args__ = (
        UniqueConstraint('attribute_code', 'label', name='uq_attribute_option_label'),
    )

    id = Column(Integer, primary_key=True, index=True)
    attribute_code = Column(String(64), nullable=False, index=True)
    label = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<AttributeOption {self.attribute_code}={self.label}>"
