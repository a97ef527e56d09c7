"""Command audit models."""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class CommandRow(Base):
    """One executed queue command. Rows are never updated after insert."""

    __tablename__ = "commands"

    # ULID, sortable by creation time
    id = Column(String(26), primary_key=True)

    # Allowed values: reassignment, duplicate, remove
    command_type = Column(String(20), nullable=False)

    discussion_link = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    target_namespaces = relationship("CommandTargetNamespace", cascade="all, delete-orphan")
    from_categories = relationship("CommandFromCategory", cascade="all, delete-orphan")
    to_categories = relationship(
        "CommandToCategory",
        cascade="all, delete-orphan",
        order_by="CommandToCategory.position",
    )
    operations = relationship("OperationRow", back_populates="command")


class CommandTargetNamespace(Base):
    """Namespace a command was scoped to (0 = articles, 14 = categories)."""

    __tablename__ = "command_target_namespaces"

    id = Column(Integer, primary_key=True, autoincrement=True)
    command_id = Column(String(26), ForeignKey("commands.id", ondelete="CASCADE"), nullable=False)
    namespace = Column(Integer, nullable=False)


class CommandFromCategory(Base):
    """Source category of a command."""

    __tablename__ = "command_from_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    command_id = Column(String(26), ForeignKey("commands.id", ondelete="CASCADE"), nullable=False)
    category = Column(String(255), nullable=False)


class CommandToCategory(Base):
    """Destination category of a command, in command order."""

    __tablename__ = "command_to_categories"
    __table_args__ = (
        Index("ix_command_to_categories_command_id", "command_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    command_id = Column(String(26), ForeignKey("commands.id", ondelete="CASCADE"), nullable=False)
    category = Column(String(255), nullable=False)
    position = Column(Integer, nullable=False, default=0)
