"""Precedence ordering, override merge and duplicate detection for launches.

Targets are applied from the broadest scope to the most specific one
(HOST, HOST_GROUP, USER). The sort key is the plain ``TargetType.order``
value; names only make the listing deterministic. Two targets of the same
order setting the same pair are a conflict and never decide the effective value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .models import Launch, LaunchConfig, LaunchPreferred, Target

logger = logging.getLogger(__name__)


PreferenceKey = tuple[str, str]


@dataclass(frozen=True)
class DuplicatePreference:
    """Launches sharing a (config, preferred) pair, reported for administrative review."""

    config_name: str
    preferred_name: str
    targets: tuple[str, ...]
    # Two or more of the targets have the same precedence order
    tie: bool


def _ids(items: Optional[Iterable]) -> Optional[set[int]]:
    if not items:
        return None
    return {item.id for item in items}


def filter_launches(
    launches: Iterable[Launch],
    targets: Optional[Iterable[Target]] = None,
    configs: Optional[Iterable[LaunchConfig]] = None,
    preferred: Optional[Iterable[LaunchPreferred]] = None,
) -> list[Launch]:
    """Keep launches matching every filter; an absent or empty filter matches everything."""

    target_ids, config_ids, preferred_ids = _ids(targets), _ids(configs), _ids(preferred)
    return [
        launch
        for launch in launches
        if (target_ids is None or launch.target_id in target_ids)
        and (config_ids is None or launch.launch_config_id in config_ids)
        and (preferred_ids is None or launch.launch_preferred_id in preferred_ids)
    ]


def target_order_key(launch: Launch) -> tuple[int, str, str, str]:
    return (
        launch.target.type.order,
        launch.target.name.lower(),
        launch.config.name.lower(),
        launch.preferred.name.lower(),
    )


def sort_by_target_order(launches: Iterable[Launch]) -> list[Launch]:
    return sorted(launches, key=target_order_key)


def preference_key(launch: Launch) -> PreferenceKey:
    return (launch.config.name, launch.preferred.name)


def find_conflicts(launches: Iterable[Launch]) -> list[PreferenceKey]:
    """Pairs whose most specific setting comes from several targets of the same order."""

    top: dict[PreferenceKey, tuple[int, set[int]]] = {}
    for launch in launches:
        key = preference_key(launch)
        order = launch.target.type.order
        current = top.get(key)
        if current is None or order > current[0]:
            top[key] = (order, {launch.target_id})
        elif order == current[0]:
            current[1].add(launch.target_id)
    return sorted(key for key, (_, target_ids) in top.items() if len(target_ids) > 1)


def merge_effective(sorted_launches: Sequence[Launch]) -> dict[PreferenceKey, Launch]:
    """Apply launches in order; a later launch overrides an earlier one on the same pair.

    Pairs left undecided by an equal precedence tie are omitted.
    """

    conflicts = set(find_conflicts(sorted_launches))
    effective: dict[PreferenceKey, Launch] = {}
    for launch in sorted_launches:
        key = preference_key(launch)
        if key not in conflicts:
            effective[key] = launch
    return effective


def find_duplicates(launches: Iterable[Launch]) -> list[DuplicatePreference]:
    """Report every (config, preferred) pair set by more than one target.

    Pairs are compared across targets, so a USER overriding a HOST is also
    reported; ``tie`` marks groups where precedence alone cannot decide.
    """

    groups: dict[PreferenceKey, list[Launch]] = {}
    for launch in sort_by_target_order(launches):
        groups.setdefault(preference_key(launch), []).append(launch)

    duplicates: list[DuplicatePreference] = []
    for (config_name, preferred_name), members in groups.items():
        if len(members) < 2:
            continue
        orders = [member.target.type.order for member in members]
        duplicate = DuplicatePreference(
            config_name=config_name,
            preferred_name=preferred_name,
            targets=tuple(member.target.name for member in members),
            tie=len(set(orders)) < len(orders),
        )
        logger.warning(
            "Duplicate launch preference %s/%s on targets %s%s",
            config_name,
            preferred_name,
            ", ".join(duplicate.targets),
            " (same precedence)" if duplicate.tie else "",
        )
        duplicates.append(duplicate)
    return duplicates
