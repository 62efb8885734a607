"""SQLAlchemy models and DTOs for launch targets, configs and preferences."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


class TargetType(Enum):
    """Kind of launch target; ``order`` runs from the broadest scope to the most specific."""

    HOST = ("HOST", "Host", 1)
    HOST_GROUP = ("HOSTGROUP", "Host Group", 2)
    USER = ("USER", "User", 3)

    def __init__(self, code: str, description: str, order: int) -> None:
        self.code = code
        self.description = description
        self.order = order

    @classmethod
    def from_code(cls, code: Optional[str]) -> Optional["TargetType"]:
        if code is None:
            return None
        normalized = code.strip().upper()
        return next((member for member in cls if member.code == normalized), None)

    @classmethod
    def from_description(cls, description: Optional[str]) -> Optional["TargetType"]:
        if description is None:
            return None
        normalized = description.strip().lower()
        return next((member for member in cls if member.description.lower() == normalized), None)

    def __str__(self) -> str:
        return self.description


class TargetTypeColumn(TypeDecorator):
    """Stores :class:`TargetType` as its code."""

    impl = String(20)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, TargetType):
            return value.code
        target_type = TargetType.from_code(str(value))
        if target_type is None:
            raise ValueError(f"Unknown target type: {value}")
        return target_type.code

    def process_result_value(self, value, dialect):
        return TargetType.from_code(value)


class Base(DeclarativeBase):
    pass


class Target(Base):
    __tablename__ = "target"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    type: Mapped[TargetType] = mapped_column(TargetTypeColumn(), nullable=False)

    def __repr__(self) -> str:
        return f"Target(id={self.id!r}, name={self.name!r}, type={self.type.code if self.type else None})"


class TargetGroup(Base):
    """Membership of a host in a host group."""

    __tablename__ = "target_group"

    group_id: Mapped[int] = mapped_column(Integer, ForeignKey("target.id", ondelete="CASCADE"), primary_key=True)
    member_id: Mapped[int] = mapped_column(Integer, ForeignKey("target.id", ondelete="CASCADE"), primary_key=True)


class LaunchConfig(Base):
    __tablename__ = "launch_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)


class LaunchPreferred(Base):
    __tablename__ = "launch_preferred"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Launch(Base):
    """Association of a target with a config and a preferred entry."""

    __tablename__ = "launch"

    target_id: Mapped[int] = mapped_column(Integer, ForeignKey("target.id", ondelete="CASCADE"), primary_key=True)
    launch_config_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("launch_config.id", ondelete="CASCADE"), primary_key=True
    )
    launch_preferred_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("launch_preferred.id", ondelete="CASCADE"), primary_key=True
    )
    selection: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    target: Mapped[Target] = relationship(lazy="joined")
    config: Mapped[LaunchConfig] = relationship(lazy="joined")
    preferred: Mapped[LaunchPreferred] = relationship(lazy="joined")


class LaunchDTO(BaseModel):
    """Flattened launch row returned by the preference service."""

    model_config = ConfigDict(frozen=True)

    target_name: str
    target_type: str
    config_name: str
    preferred_name: str
    preferred_type: Optional[str] = None
    preferred_value: Optional[str] = None
    selection: Optional[str] = None

    @classmethod
    def from_launch(cls, launch: Launch) -> "LaunchDTO":
        return cls(
            target_name=launch.target.name,
            target_type=launch.target.type.code,
            config_name=launch.config.name,
            preferred_name=launch.preferred.name,
            preferred_type=launch.preferred.type,
            preferred_value=launch.preferred.value,
            selection=launch.selection,
        )
