"""
Badge requirement interpreter.

A badge's requirements object (any subset of min_points, min_tasks_completed,
tasks_by_category, min_streak, min_co2_saved, min_waste_recycled,
min_km_green) is parsed into tagged `Requirement` predicates. A badge
qualifies when every predicate present holds; absent fields are ignored.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Mapping, Tuple

from ecoquest.models.badge import Requirement, RequirementKind
from ecoquest.models.user import User

_SCALAR_KINDS = {kind.value: kind for kind in RequirementKind if kind is not RequirementKind.MIN_CATEGORY_TASKS}

_MEASURES: Dict[RequirementKind, Callable[[User, Requirement], float]] = {
    RequirementKind.MIN_POINTS: lambda user, req: user.points,
    RequirementKind.MIN_TASKS_COMPLETED: lambda user, req: user.stats.total_tasks_completed,
    RequirementKind.MIN_CATEGORY_TASKS: lambda user, req: user.stats.tasks_by_category.get(req.category, 0),
    RequirementKind.MIN_STREAK: lambda user, req: user.streak,
    RequirementKind.MIN_CO2_SAVED: lambda user, req: user.ambient.co2_saved,
    RequirementKind.MIN_WASTE_RECYCLED: lambda user, req: user.ambient.waste_recycled,
    RequirementKind.MIN_KM_GREEN: lambda user, req: user.ambient.km_green,
}


def _check_threshold(key: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Badge requirement {key} must be a number, got {value!r}")


def parse_requirements(raw: Mapping[str, Any]) -> Tuple[Requirement, ...]:
    """Build predicates from a requirements mapping. Unknown keys are rejected."""
    if not isinstance(raw, Mapping):
        raise ValueError(f"Badge requirements must be a mapping, got {type(raw).__name__}")
    parsed = []
    for key, value in raw.items():
        if value is None:
            continue
        if key == RequirementKind.MIN_CATEGORY_TASKS.value:
            if not isinstance(value, Mapping):
                raise ValueError(f"Badge requirement {key} must map categories to thresholds")
            for category, threshold in value.items():
                _check_threshold(f"{key}.{category}", threshold)
                # A zero threshold is no constraint at all.
                if threshold:
                    parsed.append(Requirement(RequirementKind.MIN_CATEGORY_TASKS, threshold, category))
        elif key in _SCALAR_KINDS:
            _check_threshold(key, value)
            parsed.append(Requirement(_SCALAR_KINDS[key], value))
        else:
            raise ValueError(f"Unknown badge requirement: {key}")
    return tuple(parsed)


def requirements_to_dict(requirements: Iterable[Requirement]) -> Dict[str, Any]:
    raw: Dict[str, Any] = {}
    for req in requirements:
        if req.kind is RequirementKind.MIN_CATEGORY_TASKS:
            raw.setdefault(req.kind.value, {})[req.category] = req.threshold
        else:
            raw[req.kind.value] = req.threshold
    return raw


def is_satisfied(requirement: Requirement, user: User) -> bool:
    return _MEASURES[requirement.kind](user, requirement) >= requirement.threshold


def qualifies(requirements: Iterable[Requirement], user: User) -> bool:
    return all(is_satisfied(req, user) for req in requirements)
