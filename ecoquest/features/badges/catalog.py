"""Default badge catalog and level thresholds. Used for seeding only; the store is the source of truth."""
from __future__ import annotations

from typing import List, Sequence, Tuple

from ecoquest.features.badges.rules import parse_requirements
from ecoquest.models.badge import Badge

LEVEL_THRESHOLDS: Tuple[Tuple[int, str], ...] = (
    (5000, "Sustainability Champion"),
    (1000, "Local Hero"),
    (500, "Active Citizen"),
    (100, "Newcomer"),
    (0, "Citizen"),
)

_DEFAULT_BADGES = [
    # Points
    ("points-100", "Newcomer", "Earn your first 100 points", "🌱", "Points", "Common", 1, {"min_points": 100}),
    ("points-500", "Active Citizen", "Accumulate 500 points", "⭐", "Points", "Common", 2, {"min_points": 500}),
    ("points-1000", "Local Hero", "Reach 1000 points", "🏆", "Points", "Rare", 3, {"min_points": 1000}),
    ("points-5000", "Sustainability Champion", "Accumulate 5000 points", "👑", "Points", "Legendary", 4, {"min_points": 5000}),
    # Tasks
    ("tasks-1", "First Step", "Complete your first task", "👣", "Tasks", "Common", 10, {"min_tasks_completed": 1}),
    ("tasks-10", "Reliable Doer", "Complete 10 tasks", "💪", "Tasks", "Common", 11, {"min_tasks_completed": 10}),
    ("tasks-50", "Mission Master", "Complete 50 tasks", "🎯", "Tasks", "Epic", 12, {"min_tasks_completed": 50}),
    # Categories
    ("mobility-15", "Green Mobility", "Complete 15 mobility tasks", "🚴", "Tasks", "Rare", 20, {"tasks_by_category": {"Mobility": 15}}),
    ("waste-15", "Waste Guardian", "Complete 15 waste tasks", "♻️", "Tasks", "Rare", 21, {"tasks_by_category": {"Waste": 15}}),
    ("community-15", "Community Heart", "Complete 15 community tasks", "❤️", "Tasks", "Rare", 22, {"tasks_by_category": {"Community": 15}}),
    ("volunteering-15", "Golden Volunteer", "Complete 15 volunteering tasks", "🤝", "Tasks", "Rare", 23, {"tasks_by_category": {"Volunteering": 15}}),
    # Streaks
    ("streak-7", "Consistency Pays", "Keep a 7 day streak", "🔥", "Streak", "Rare", 30, {"min_streak": 7}),
    ("streak-30", "Unstoppable", "Keep a 30 day streak", "💎", "Streak", "Epic", 31, {"min_streak": 30}),
    ("streak-100", "Living Legend", "Keep a 100 day streak", "🌟", "Streak", "Legendary", 32, {"min_streak": 100}),
    # Environmental impact
    ("co2-50", "Climate Saver", "Save 50 kg of CO2", "🌍", "Environmental", "Rare", 40, {"min_co2_saved": 50}),
    ("waste-100kg", "Recycling Champion", "Recycle 100 kg of waste", "🌿", "Environmental", "Rare", 41, {"min_waste_recycled": 100}),
    ("km-100", "Green Marathoner", "Travel 100 km with sustainable mobility", "🚲", "Environmental", "Epic", 42, {"min_km_green": 100}),
]


def default_badges() -> List[Badge]:
    return [
        Badge(
            badge_id=badge_id,
            name=name,
            description=description,
            icon=icon,
            category=category,
            rarity=rarity,
            display_order=display_order,
            requirements=parse_requirements(requirements),
        )
        for badge_id, name, description, icon, category, rarity, display_order, requirements in _DEFAULT_BADGES
    ]


def derive_level(points: int, thresholds: Sequence[Tuple[int, str]] = LEVEL_THRESHOLDS) -> str:
    """Highest level whose threshold the points meet or exceed."""
    ordered = sorted(thresholds, key=lambda item: item[0], reverse=True)
    for minimum, level in ordered:
        if points >= minimum:
            return level
    return ordered[-1][1]
