"""Operation audit model."""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class OperationRow(Base):
    """A page edit made under a command; used to roll the edit back."""

    __tablename__ = "operations"
    __table_args__ = (
        Index("ix_operations_command_id", "command_id"),
    )

    id = Column(String(26), primary_key=True)
    command_id = Column(String(26), ForeignKey("commands.id", ondelete="CASCADE"), nullable=False)

    page_id = Column(Integer, nullable=False)
    # NULL when the save produced no new revision (MediaWiki "nochange")
    new_revision_id = Column(Integer, nullable=True)

    # Allowed values: reassignment, remove, duplicate
    operation_type = Column(String(20), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    command = relationship("CommandRow", back_populates="operations")
