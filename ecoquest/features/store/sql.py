"""
SQLAlchemy-backed store.

Every state transition that can race is a single conditional UPDATE whose
rowcount decides the winner; counters are incremented in SQL.
"""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func, insert, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ecoquest.core.clock import ensure_utc, utc_now
from ecoquest.core.database import (
    assignments,
    badges,
    get_engine,
    job_runs,
    neighborhoods,
    quizzes,
    submissions,
    tasks,
    user_badges,
    user_category_stats,
    users,
)
from ecoquest.core.errors import AssignmentConflict
from ecoquest.features.badges.rules import parse_requirements, requirements_to_dict
from ecoquest.models.assignment import Assignment, AssignmentStatus, slot_key
from ecoquest.models.badge import Badge
from ecoquest.models.neighborhood import EnvironmentalData, Neighborhood
from ecoquest.models.submission import Submission, SubmissionStatus
from ecoquest.models.task import (
    RECURRING_FREQUENCIES,
    Frequency,
    ImpactMetrics,
    Quiz,
    QuizQuestion,
    Task,
    VerificationCriteria,
    VerificationMethod,
)
from ecoquest.models.user import AmbientImpact, User, UserStats

logger = logging.getLogger("ecoquest.store")

_LIVE_ASSIGNMENT_STATUSES = (AssignmentStatus.ASSIGNED.value, AssignmentStatus.COMPLETED.value)
_RECURRING_VALUES = tuple(f.value for f in RECURRING_FREQUENCIES)


class SqlStore:
    """Store implementation on SQLAlchemy Core tables (PostgreSQL or SQLite)."""

    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine or get_engine()
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)

    @contextmanager
    def _session(self):
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _dialect_insert(self, table):
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            return pg_insert(table)
        if dialect == "sqlite":
            return sqlite_insert(table)
        raise NotImplementedError(f"Upserts are not supported on dialect {dialect!r}")

    # Users ----------------------------------------------------------
    def get_user(self, user_id: str) -> Optional[User]:
        with self._session() as session:
            row = session.execute(select(users).where(users.c.user_id == user_id)).first()
            if row is None:
                return None
            category_rows = session.execute(
                select(user_category_stats).where(user_category_stats.c.user_id == user_id)
            ).fetchall()
            badge_ids = session.execute(
                select(user_badges.c.badge_id).where(user_badges.c.user_id == user_id)
            ).scalars().all()
        return _row_to_user(row, {r.category: r.completed for r in category_rows}, set(badge_ids))

    def insert_user(self, user: User) -> None:
        with self._session() as session:
            session.execute(
                insert(users).values(
                    user_id=user.user_id,
                    name=user.name,
                    neighborhood_id=user.neighborhood_id,
                    points=user.points,
                    streak=user.streak,
                    last_activity_date=user.last_activity_date,
                    co2_saved=user.ambient.co2_saved,
                    waste_recycled=user.ambient.waste_recycled,
                    km_green=user.ambient.km_green,
                    total_tasks_completed=user.stats.total_tasks_completed,
                    level=user.level,
                    is_active=user.is_active,
                )
            )
            for category, completed in user.stats.tasks_by_category.items():
                session.execute(
                    insert(user_category_stats).values(user_id=user.user_id, category=category, completed=completed)
                )

    def apply_award(
        self,
        user_id: str,
        *,
        points: int,
        streak: int,
        last_activity_date: datetime,
        co2_saved: float,
        waste_recycled: float,
        km_green: float,
        category: str,
    ) -> Optional[User]:
        with self._session() as session:
            result = session.execute(
                update(users)
                .where(users.c.user_id == user_id)
                .values(
                    points=users.c.points + points,
                    streak=streak,
                    last_activity_date=last_activity_date,
                    co2_saved=users.c.co2_saved + co2_saved,
                    waste_recycled=users.c.waste_recycled + waste_recycled,
                    km_green=users.c.km_green + km_green,
                    total_tasks_completed=users.c.total_tasks_completed + 1,
                )
            )
            if result.rowcount == 0:
                return None
            stmt = self._dialect_insert(user_category_stats).values(
                user_id=user_id, category=category, completed=1
            )
            session.execute(
                stmt.on_conflict_do_update(
                    index_elements=[user_category_stats.c.user_id, user_category_stats.c.category],
                    set_={"completed": user_category_stats.c.completed + 1},
                )
            )
        return self.get_user(user_id)

    def set_user_level(self, user_id: str, level: str) -> None:
        with self._session() as session:
            session.execute(update(users).where(users.c.user_id == user_id).values(level=level))

    def grant_badges(self, user_id: str, badge_ids: Sequence[str], awarded_at: datetime) -> List[str]:
        granted: List[str] = []
        with self._session() as session:
            for badge_id in badge_ids:
                stmt = self._dialect_insert(user_badges).values(
                    user_id=user_id, badge_id=badge_id, awarded_at=awarded_at
                )
                result = session.execute(
                    stmt.on_conflict_do_nothing(index_elements=[user_badges.c.user_id, user_badges.c.badge_id])
                )
                if result.rowcount:
                    granted.append(badge_id)
        return granted

    def count_users(
        self,
        neighborhood_id: str,
        *,
        active_since: Optional[datetime] = None,
    ) -> int:
        conditions = [users.c.neighborhood_id == neighborhood_id, users.c.is_active.is_(True)]
        if active_since is not None:
            conditions.append(users.c.last_activity_date >= active_since)
        with self._session() as session:
            return session.execute(
                select(func.count()).select_from(users).where(and_(*conditions))
            ).scalar() or 0

    def list_users_last_active_between(self, start: datetime, end: datetime) -> List[User]:
        with self._session() as session:
            ids = session.execute(
                select(users.c.user_id).where(
                    users.c.is_active.is_(True),
                    users.c.last_activity_date >= start,
                    users.c.last_activity_date < end,
                )
            ).scalars().all()
        return [user for user in (self.get_user(user_id) for user_id in ids) if user is not None]

    # Neighborhoods ---------------------------------------------------
    def get_neighborhood(self, neighborhood_id: str) -> Optional[Neighborhood]:
        with self._session() as session:
            row = session.execute(
                select(neighborhoods).where(neighborhoods.c.neighborhood_id == neighborhood_id)
            ).first()
        return _row_to_neighborhood(row) if row else None

    def insert_neighborhood(self, neighborhood: Neighborhood) -> None:
        env = neighborhood.environmental_data
        with self._session() as session:
            session.execute(
                insert(neighborhoods).values(
                    neighborhood_id=neighborhood.neighborhood_id,
                    name=neighborhood.name,
                    city=neighborhood.city,
                    base_points=neighborhood.base_points,
                    normalized_points=neighborhood.normalized_points,
                    ranking_position=neighborhood.ranking_position,
                    last_ranking_update=neighborhood.last_ranking_update,
                    env_co2_saved=env.co2_saved,
                    env_waste_recycled=env.waste_recycled,
                    env_km_green=env.km_green,
                    env_last_updated=env.last_updated,
                )
            )

    def list_neighborhoods(self) -> List[Neighborhood]:
        with self._session() as session:
            rows = session.execute(select(neighborhoods).order_by(neighborhoods.c.neighborhood_id)).fetchall()
        return [_row_to_neighborhood(row) for row in rows]

    def apply_neighborhood_delta(
        self,
        neighborhood_id: str,
        *,
        points: int,
        co2_saved: float,
        waste_recycled: float,
        km_green: float,
        now: datetime,
    ) -> bool:
        with self._session() as session:
            result = session.execute(
                update(neighborhoods)
                .where(neighborhoods.c.neighborhood_id == neighborhood_id)
                .values(
                    base_points=neighborhoods.c.base_points + points,
                    env_co2_saved=neighborhoods.c.env_co2_saved + co2_saved,
                    env_waste_recycled=neighborhoods.c.env_waste_recycled + waste_recycled,
                    env_km_green=neighborhoods.c.env_km_green + km_green,
                    env_last_updated=now,
                )
            )
            return result.rowcount == 1

    def set_normalized_points(self, neighborhood_id: str, normalized_points: float) -> None:
        with self._session() as session:
            session.execute(
                update(neighborhoods)
                .where(neighborhoods.c.neighborhood_id == neighborhood_id)
                .values(normalized_points=normalized_points)
            )

    def save_rankings(self, rankings: Sequence[Tuple[str, int, float]], now: datetime) -> None:
        with self._session() as session:
            for neighborhood_id, rank, normalized_points in rankings:
                session.execute(
                    update(neighborhoods)
                    .where(neighborhoods.c.neighborhood_id == neighborhood_id)
                    .values(
                        ranking_position=rank,
                        normalized_points=normalized_points,
                        last_ranking_update=now,
                    )
                )

    # Tasks -----------------------------------------------------------
    def get_task(self, task_id: str) -> Optional[Task]:
        with self._session() as session:
            row = session.execute(select(tasks).where(tasks.c.task_id == task_id)).first()
        return _row_to_task(row) if row else None

    def insert_task(self, task: Task) -> None:
        with self._session() as session:
            session.execute(insert(tasks).values(**_task_values(task)))

    @staticmethod
    def _eligibility(frequency: Frequency, neighborhood_id: Optional[str]):
        scope = tasks.c.neighborhood_id.is_(None)
        if neighborhood_id is not None:
            scope = or_(scope, tasks.c.neighborhood_id == neighborhood_id)
        return and_(
            tasks.c.frequency == Frequency(frequency).value,
            tasks.c.is_active.is_(True),
            scope,
        )

    def count_eligible_tasks(self, frequency: Frequency, neighborhood_id: Optional[str]) -> int:
        with self._session() as session:
            return session.execute(
                select(func.count()).select_from(tasks).where(self._eligibility(frequency, neighborhood_id))
            ).scalar() or 0

    def eligible_task_at(self, frequency: Frequency, neighborhood_id: Optional[str], offset: int) -> Optional[Task]:
        with self._session() as session:
            row = session.execute(
                select(tasks)
                .where(self._eligibility(frequency, neighborhood_id))
                .order_by(tasks.c.created_at, tasks.c.task_id)
                .offset(offset)
                .limit(1)
            ).first()
        return _row_to_task(row) if row else None

    def list_on_demand_tasks(self, neighborhood_id: Optional[str]) -> List[Task]:
        with self._session() as session:
            rows = session.execute(
                select(tasks)
                .where(self._eligibility(Frequency.ON_DEMAND, neighborhood_id))
                .order_by(tasks.c.created_at, tasks.c.task_id)
            ).fetchall()
        return [_row_to_task(row) for row in rows]

    def deactivate_expired_tasks(self, now: datetime) -> int:
        with self._session() as session:
            result = session.execute(
                update(tasks)
                .where(
                    tasks.c.is_active.is_(True),
                    tasks.c.frequency.in_(_RECURRING_VALUES),
                    tasks.c.expires_at.is_not(None),
                    tasks.c.expires_at < now,
                )
                .values(is_active=False)
            )
            return result.rowcount or 0

    def list_rotation_candidates(self, now: datetime) -> List[Task]:
        with self._session() as session:
            rows = session.execute(
                select(tasks)
                .where(
                    tasks.c.is_active.is_(False),
                    tasks.c.frequency.in_(_RECURRING_VALUES),
                    tasks.c.expires_at.is_not(None),
                    tasks.c.expires_at < now,
                    tasks.c.rotated_at.is_(None),
                )
                .order_by(tasks.c.expires_at, tasks.c.task_id)
            ).fetchall()
        return [_row_to_task(row) for row in rows]

    def rotate_task(self, task_id: str, replacement: Task, now: datetime) -> bool:
        with self._session() as session:
            result = session.execute(
                update(tasks)
                .where(tasks.c.task_id == task_id, tasks.c.rotated_at.is_(None))
                .values(rotated_at=now)
            )
            if result.rowcount != 1:
                return False
            # Same transaction: a failed insert releases the claim for the next run.
            session.execute(insert(tasks).values(**_task_values(replacement)))
            return True

    # Quizzes ---------------------------------------------------------
    def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        with self._session() as session:
            row = session.execute(select(quizzes).where(quizzes.c.quiz_id == quiz_id)).first()
        if row is None:
            return None
        return Quiz(
            quiz_id=row.quiz_id,
            title=row.title,
            passing_score=row.passing_score,
            questions=[
                QuizQuestion(
                    text=q.get("text", ""),
                    options=list(q.get("options", [])),
                    correct_option_index=q["correct_option_index"],
                )
                for q in (row.questions or [])
            ],
        )

    def insert_quiz(self, quiz: Quiz) -> None:
        with self._session() as session:
            session.execute(
                insert(quizzes).values(
                    quiz_id=quiz.quiz_id,
                    title=quiz.title,
                    passing_score=quiz.passing_score,
                    questions=[
                        {"text": q.text, "options": q.options, "correct_option_index": q.correct_option_index}
                        for q in quiz.questions
                    ],
                )
            )

    # Assignments -----------------------------------------------------
    def list_valid_assignments(self, user_id: str) -> List[Assignment]:
        with self._session() as session:
            rows = session.execute(
                select(assignments)
                .where(assignments.c.user_id == user_id, assignments.c.status.in_(_LIVE_ASSIGNMENT_STATUSES))
                .order_by(assignments.c.assigned_at)
            ).fetchall()
        return [_row_to_assignment(row) for row in rows]

    def expire_assignments(self, now: datetime, user_id: Optional[str] = None) -> List[Assignment]:
        conditions = [assignments.c.status.in_(_LIVE_ASSIGNMENT_STATUSES), assignments.c.expires_at < now]
        if user_id is not None:
            conditions.append(assignments.c.user_id == user_id)
        expired: List[Assignment] = []
        with self._session() as session:
            rows = session.execute(select(assignments).where(and_(*conditions))).fetchall()
            for row in rows:
                result = session.execute(
                    update(assignments)
                    .where(assignments.c.assignment_id == row.assignment_id, assignments.c.status == row.status)
                    .values(status=AssignmentStatus.EXPIRED.value, slot_key=None)
                )
                if result.rowcount == 1:
                    assignment = _row_to_assignment(row)
                    assignment.status = AssignmentStatus.EXPIRED
                    expired.append(assignment)
        return expired

    def insert_assignment(self, assignment: Assignment) -> None:
        try:
            with self._session() as session:
                session.execute(
                    insert(assignments).values(
                        assignment_id=assignment.assignment_id,
                        user_id=assignment.user_id,
                        task_id=assignment.task_id,
                        frequency=Frequency(assignment.frequency).value,
                        status=AssignmentStatus(assignment.status).value,
                        slot_key=slot_key(assignment.user_id, assignment.frequency),
                        assigned_at=assignment.assigned_at,
                        expires_at=assignment.expires_at,
                        completed_at=assignment.completed_at,
                    )
                )
        except IntegrityError as exc:
            raise AssignmentConflict(
                f"User {assignment.user_id} already holds a live {Frequency(assignment.frequency).value} assignment"
            ) from exc

    def find_claimable_assignment(self, user_id: str, task_id: str, now: datetime) -> Optional[Assignment]:
        with self._session() as session:
            row = session.execute(
                select(assignments).where(
                    assignments.c.user_id == user_id,
                    assignments.c.task_id == task_id,
                    assignments.c.status == AssignmentStatus.ASSIGNED.value,
                    assignments.c.expires_at >= now,
                )
            ).first()
        return _row_to_assignment(row) if row else None

    def claim_assignment(self, assignment_id: str, now: datetime) -> bool:
        with self._session() as session:
            result = session.execute(
                update(assignments)
                .where(
                    assignments.c.assignment_id == assignment_id,
                    assignments.c.status == AssignmentStatus.ASSIGNED.value,
                    assignments.c.expires_at >= now,
                )
                .values(status=AssignmentStatus.COMPLETED.value, completed_at=now)
            )
            return result.rowcount == 1

    # Submissions -----------------------------------------------------
    def insert_submission(self, submission: Submission) -> None:
        with self._session() as session:
            session.execute(
                insert(submissions).values(
                    submission_id=submission.submission_id,
                    user_id=submission.user_id,
                    task_id=submission.task_id,
                    neighborhood_id=submission.neighborhood_id,
                    assignment_id=submission.assignment_id,
                    status=SubmissionStatus(submission.status).value,
                    proof=submission.proof,
                    points_awarded=submission.points_awarded,
                    rejection_reason=submission.rejection_reason,
                    submitted_at=submission.submitted_at,
                    completed_at=submission.completed_at,
                    reviewed_by=submission.reviewed_by,
                )
            )

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        with self._session() as session:
            row = session.execute(
                select(submissions).where(submissions.c.submission_id == submission_id)
            ).first()
        return _row_to_submission(row) if row else None

    def resolve_submission(
        self,
        submission_id: str,
        status: SubmissionStatus,
        *,
        completed_at: Optional[datetime],
        reviewed_by: Optional[str] = None,
        rejection_reason: Optional[str] = None,
    ) -> bool:
        with self._session() as session:
            result = session.execute(
                update(submissions)
                .where(
                    submissions.c.submission_id == submission_id,
                    submissions.c.status == SubmissionStatus.PENDING.value,
                )
                .values(
                    status=SubmissionStatus(status).value,
                    completed_at=completed_at,
                    reviewed_by=reviewed_by,
                    rejection_reason=rejection_reason,
                )
            )
            return result.rowcount == 1

    def set_submission_points(self, submission_id: str, points_awarded: int) -> None:
        with self._session() as session:
            session.execute(
                update(submissions)
                .where(submissions.c.submission_id == submission_id)
                .values(points_awarded=points_awarded)
            )

    def list_submissions(
        self,
        *,
        status: Optional[SubmissionStatus] = None,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Submission]:
        stmt = select(submissions)
        if status is not None:
            stmt = stmt.where(submissions.c.status == SubmissionStatus(status).value)
        if user_id is not None:
            stmt = stmt.where(submissions.c.user_id == user_id)
        stmt = stmt.order_by(submissions.c.submitted_at.desc(), submissions.c.submission_id).limit(limit)
        with self._session() as session:
            rows = session.execute(stmt).fetchall()
        return [_row_to_submission(row) for row in rows]

    def sum_approved_points(self, neighborhood_id: str, start: datetime, end: datetime) -> int:
        with self._session() as session:
            total = session.execute(
                select(func.coalesce(func.sum(submissions.c.points_awarded), 0)).where(
                    submissions.c.neighborhood_id == neighborhood_id,
                    submissions.c.status == SubmissionStatus.APPROVED.value,
                    submissions.c.completed_at >= start,
                    submissions.c.completed_at < end,
                )
            ).scalar()
        return int(total or 0)

    def last_approved_at(self, user_id: str, task_id: str) -> Optional[datetime]:
        with self._session() as session:
            value = session.execute(
                select(func.max(submissions.c.completed_at)).where(
                    submissions.c.user_id == user_id,
                    submissions.c.task_id == task_id,
                    submissions.c.status == SubmissionStatus.APPROVED.value,
                )
            ).scalar()
        return ensure_utc(value)

    # Badges ----------------------------------------------------------
    def list_badges(self) -> List[Badge]:
        with self._session() as session:
            rows = session.execute(
                select(badges).order_by(badges.c.display_order, badges.c.badge_id)
            ).fetchall()
        catalog = []
        for row in rows:
            try:
                requirements = parse_requirements(row.requirements or {})
            except ValueError:
                logger.warning(
                    "badge.requirements_invalid",
                    extra={"event_type": "badge.requirements_invalid", "badge_id": row.badge_id},
                    exc_info=True,
                )
                continue
            catalog.append(
                Badge(
                    badge_id=row.badge_id,
                    name=row.name,
                    description=row.description,
                    icon=row.icon,
                    category=row.category,
                    rarity=row.rarity,
                    display_order=row.display_order,
                    requirements=requirements,
                )
            )
        return catalog

    def upsert_badge(self, badge: Badge) -> bool:
        raw_requirements = requirements_to_dict(badge.requirements)
        # Raises ValueError for anything list_badges could not read back.
        parse_requirements(raw_requirements)
        try:
            with self._session() as session:
                exists = session.execute(select(badges.c.badge_id).where(badges.c.name == badge.name)).first()
                if exists:
                    return False
                session.execute(
                    insert(badges).values(
                        badge_id=badge.badge_id,
                        name=badge.name,
                        description=badge.description,
                        icon=badge.icon,
                        category=badge.category,
                        rarity=badge.rarity,
                        display_order=badge.display_order,
                        requirements=raw_requirements,
                    )
                )
                return True
        except IntegrityError:
            return False

    # Jobs ------------------------------------------------------------
    def record_job_run(
        self,
        job_name: str,
        *,
        started_at: datetime,
        finished_at: datetime,
        status: str,
        stats: Dict[str, object],
    ) -> None:
        with self._session() as session:
            session.execute(
                insert(job_runs).values(
                    job_name=job_name,
                    started_at=started_at,
                    finished_at=finished_at,
                    status=status,
                    stats_json=json.dumps(stats, default=str),
                )
            )


def _row_to_user(row, tasks_by_category: Dict[str, int], badge_ids: set) -> User:
    return User(
        user_id=row.user_id,
        name=row.name,
        neighborhood_id=row.neighborhood_id,
        points=row.points,
        streak=row.streak,
        last_activity_date=ensure_utc(row.last_activity_date),
        ambient=AmbientImpact(
            co2_saved=row.co2_saved,
            waste_recycled=row.waste_recycled,
            km_green=row.km_green,
        ),
        stats=UserStats(
            total_tasks_completed=row.total_tasks_completed,
            tasks_by_category=tasks_by_category,
        ),
        badges=badge_ids,
        level=row.level,
        is_active=bool(row.is_active),
    )


def _row_to_neighborhood(row) -> Neighborhood:
    return Neighborhood(
        neighborhood_id=row.neighborhood_id,
        name=row.name,
        city=row.city,
        base_points=row.base_points,
        normalized_points=row.normalized_points,
        ranking_position=row.ranking_position,
        last_ranking_update=ensure_utc(row.last_ranking_update),
        environmental_data=EnvironmentalData(
            co2_saved=row.env_co2_saved,
            waste_recycled=row.env_waste_recycled,
            km_green=row.env_km_green,
            last_updated=ensure_utc(row.env_last_updated),
        ),
    )


def _row_to_task(row) -> Task:
    criteria = row.verification_criteria or {}
    target = criteria.get("target_location")
    return Task(
        task_id=row.task_id,
        title=row.title,
        description=row.description,
        category=row.category,
        base_points=row.base_points,
        verification_method=VerificationMethod(row.verification_method),
        verification_criteria=VerificationCriteria(
            target_location=tuple(target) if target else None,
            min_distance_meters=criteria.get("min_distance_meters"),
            qr_code_secret=criteria.get("qr_code_secret"),
            quiz_id=criteria.get("quiz_id"),
        ),
        impact_metrics=ImpactMetrics(
            co2_saved=row.impact_co2_saved,
            waste_recycled=row.impact_waste_recycled,
            distance=row.impact_distance,
        ),
        frequency=Frequency(row.frequency),
        neighborhood_id=row.neighborhood_id,
        is_active=bool(row.is_active),
        expires_at=ensure_utc(row.expires_at),
        rotated_at=ensure_utc(row.rotated_at),
        rotated_from=row.rotated_from,
        created_at=ensure_utc(row.created_at),
    )


def _row_to_assignment(row) -> Assignment:
    return Assignment(
        assignment_id=row.assignment_id,
        user_id=row.user_id,
        task_id=row.task_id,
        frequency=Frequency(row.frequency),
        status=AssignmentStatus(row.status),
        assigned_at=ensure_utc(row.assigned_at),
        expires_at=ensure_utc(row.expires_at),
        completed_at=ensure_utc(row.completed_at),
    )


def _row_to_submission(row) -> Submission:
    return Submission(
        submission_id=row.submission_id,
        user_id=row.user_id,
        task_id=row.task_id,
        status=SubmissionStatus(row.status),
        proof=dict(row.proof or {}),
        neighborhood_id=row.neighborhood_id,
        assignment_id=row.assignment_id,
        points_awarded=row.points_awarded,
        rejection_reason=row.rejection_reason,
        submitted_at=ensure_utc(row.submitted_at),
        completed_at=ensure_utc(row.completed_at),
        reviewed_by=row.reviewed_by,
    )


def _task_values(task: Task) -> Dict[str, object]:
    criteria = task.verification_criteria
    criteria_json = {
        key: value
        for key, value in (
            ("target_location", list(criteria.target_location) if criteria.target_location else None),
            ("min_distance_meters", criteria.min_distance_meters),
            ("qr_code_secret", criteria.qr_code_secret),
            ("quiz_id", criteria.quiz_id),
        )
        if value is not None
    }
    return dict(
        task_id=task.task_id,
        title=task.title,
        description=task.description,
        category=task.category,
        base_points=task.base_points,
        verification_method=VerificationMethod(task.verification_method).value,
        verification_criteria=criteria_json,
        impact_co2_saved=task.impact_metrics.co2_saved,
        impact_waste_recycled=task.impact_metrics.waste_recycled,
        impact_distance=task.impact_metrics.distance,
        frequency=Frequency(task.frequency).value,
        neighborhood_id=task.neighborhood_id,
        is_active=task.is_active,
        expires_at=task.expires_at,
        rotated_at=task.rotated_at,
        rotated_from=task.rotated_from,
        created_at=task.created_at or utc_now(),
    )
