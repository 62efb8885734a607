"""Database operations for targets, launch configs, preferred entries and launches."""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import Launch, LaunchConfig, LaunchPreferred, Target, TargetGroup, TargetType


def get_target_by_name(
    session: Session,
    name: str,
    target_type: Optional[TargetType] = None,
) -> Optional[Target]:
    stmt = select(Target).where(func.lower(Target.name) == name.strip().lower())
    if target_type is not None:
        stmt = stmt.where(Target.type == target_type)
    return session.scalar(stmt)


def get_groups_of_target(session: Session, target: Target) -> list[Target]:
    stmt = (
        select(Target)
        .join(TargetGroup, TargetGroup.group_id == Target.id)
        .where(TargetGroup.member_id == target.id)
        .order_by(Target.name)
    )
    return list(session.scalars(stmt))


def get_launch_config_by_name(session: Session, name: str) -> Optional[LaunchConfig]:
    return session.scalar(select(LaunchConfig).where(func.lower(LaunchConfig.name) == name.strip().lower()))


def list_launch_preferred(session: Session, preferred_type: Optional[str] = None) -> list[LaunchPreferred]:
    stmt = select(LaunchPreferred).order_by(LaunchPreferred.name)
    if preferred_type is not None:
        stmt = stmt.where(LaunchPreferred.type == preferred_type)
    return list(session.scalars(stmt))


def find_launches(
    session: Session,
    targets: Optional[Iterable[Target]] = None,
    configs: Optional[Iterable[LaunchConfig]] = None,
    preferred: Optional[Iterable[LaunchPreferred]] = None,
) -> list[Launch]:
    """Launches matching the three filters; an absent or empty filter matches everything.

    Same semantics as :func:`launches.ordering.filter_launches`.
    """

    stmt = select(Launch)
    if targets:
        stmt = stmt.where(Launch.target_id.in_([t.id for t in targets]))
    if configs:
        stmt = stmt.where(Launch.launch_config_id.in_([c.id for c in configs]))
    if preferred:
        stmt = stmt.where(Launch.launch_preferred_id.in_([p.id for p in preferred]))
    return list(session.scalars(stmt).unique())


def create_target(session: Session, name: str, target_type: TargetType) -> Target:
    target = Target(name=name.strip(), type=target_type)
    session.add(target)
    session.flush()
    return target


def add_group_member(session: Session, group: Target, member: Target) -> TargetGroup:
    if group.type is not TargetType.HOST_GROUP:
        raise ValueError(f"Target '{group.name}' is not a host group")
    membership = TargetGroup(group_id=group.id, member_id=member.id)
    session.add(membership)
    session.flush()
    return membership


def create_launch_config(session: Session, name: str) -> LaunchConfig:
    config = LaunchConfig(name=name.strip())
    session.add(config)
    session.flush()
    return config


def create_launch_preferred(
    session: Session,
    name: str,
    preferred_type: Optional[str] = None,
    value: Optional[str] = None,
) -> LaunchPreferred:
    preferred = LaunchPreferred(name=name.strip(), type=preferred_type, value=value)
    session.add(preferred)
    session.flush()
    return preferred


def create_launch(
    session: Session,
    target: Target,
    config: LaunchConfig,
    preferred: LaunchPreferred,
    selection: Optional[str] = None,
) -> Launch:
    launch = Launch(
        target_id=target.id,
        launch_config_id=config.id,
        launch_preferred_id=preferred.id,
        selection=selection,
    )
    session.add(launch)
    session.flush()
    return launch
