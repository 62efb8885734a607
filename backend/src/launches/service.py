"""Resolve the effective launch preferences of a host/user pair."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from db.session import engine, session_scope
from errors import LaunchConfigNotFound

from . import repository
from .models import Base, LaunchDTO, Target, TargetType
from .ordering import (
    DuplicatePreference,
    PreferenceKey,
    find_conflicts,
    find_duplicates,
    merge_effective,
    sort_by_target_order,
)

logger = logging.getLogger(__name__)


@dataclass
class EffectiveLaunches:
    launches: list[LaunchDTO] = field(default_factory=list)
    effective: dict[PreferenceKey, LaunchDTO] = field(default_factory=dict)
    duplicates: list[DuplicatePreference] = field(default_factory=list)
    # Pairs tied at equal precedence, left out of ``effective``
    conflicts: list[PreferenceKey] = field(default_factory=list)


def _collect_target(session: Session, name: Optional[str], target_type: TargetType, found: list[Target]) -> None:
    if not name or not name.strip():
        return
    target = repository.get_target_by_name(session, name, target_type)
    if target is None:
        logger.debug("No %s target named %s", target_type.description.lower(), name)
        return
    found.append(target)
    found.extend(group for group in repository.get_groups_of_target(session, target) if group not in found)


class LaunchPreferenceService:
    def __init__(self) -> None:
        self._initialized = False

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        Base.metadata.create_all(engine)
        self._initialized = True

    def targets_to_look_for(self, session: Session, host: Optional[str], user: Optional[str]) -> list[Target]:
        """The host, the host groups it belongs to, and the user."""

        found: list[Target] = []
        _collect_target(session, host, TargetType.HOST, found)
        _collect_target(session, user, TargetType.USER, found)
        return found

    def resolve(
        self,
        host: Optional[str],
        user: Optional[str],
        config_name: str,
        preferred_type: Optional[str] = None,
    ) -> EffectiveLaunches:
        self._ensure_initialized()
        with session_scope() as session:
            config = repository.get_launch_config_by_name(session, config_name)
            if config is None:
                raise LaunchConfigNotFound(config_name)

            targets = self.targets_to_look_for(session, host, user)
            if not targets:
                logger.info("No launch target found for host=%s user=%s", host, user)
                return EffectiveLaunches()

            preferred = repository.list_launch_preferred(session, preferred_type)
            if not preferred:
                return EffectiveLaunches()

            launches = sort_by_target_order(repository.find_launches(session, targets, [config], preferred))
            effective = merge_effective(launches)
            duplicates = find_duplicates(launches)
            conflicts = find_conflicts(launches)
            for config_key, preferred_key in conflicts:
                logger.warning(
                    "Launch preference %s/%s is tied at equal precedence; no effective value", config_key, preferred_key
                )
            result = EffectiveLaunches(
                launches=[LaunchDTO.from_launch(launch) for launch in launches],
                effective={key: LaunchDTO.from_launch(launch) for key, launch in effective.items()},
                duplicates=duplicates,
                conflicts=conflicts,
            )

        logger.debug(
            "Resolved %d launches (%d effective, %d duplicates) for host=%s user=%s config=%s",
            len(result.launches),
            len(result.effective),
            len(result.duplicates),
            host,
            user,
            config_name,
        )
        return result

    def retrieve_launches_by_group(self, group_name: str, config_name: Optional[str] = None) -> list[LaunchDTO]:
        self._ensure_initialized()
        with session_scope() as session:
            group = repository.get_target_by_name(session, group_name, TargetType.HOST_GROUP)
            if group is None:
                return []
            configs = None
            if config_name is not None:
                config = repository.get_launch_config_by_name(session, config_name)
                if config is None:
                    raise LaunchConfigNotFound(config_name)
                configs = [config]
            launches = sort_by_target_order(repository.find_launches(session, [group], configs))
            return [LaunchDTO.from_launch(launch) for launch in launches]


launch_preference_service = LaunchPreferenceService()
