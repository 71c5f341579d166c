"""
infrastructure.persistence.plan_repo - Training plans and weekly summaries.
"""

from __future__ import annotations

import uuid
from typing import Optional

from runcoach.domain.entities import PlanPhase, TrainingPlan, WeeklySummary
from runcoach.infrastructure.persistence.connection import (
    AsyncSQLiteConnection,
    dumps_json,
    loads_json,
    utc_now_iso,
)


class SQLiteTrainingPlanRepository:

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def save(self, plan: TrainingPlan) -> TrainingPlan:
        plan_id = plan.id or str(uuid.uuid4())
        phases = [
            {"name": p.name, "startWeek": p.start_week, "endWeek": p.end_week, "focus": p.focus}
            for p in plan.phases
        ]
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO training_plans
                   (id, user_id, name, goal_event, goal_time, start_date, end_date,
                    total_weeks, status, phases, metadata, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (plan_id, plan.user_id, plan.name, plan.goal_event, plan.goal_time,
                 plan.start_date, plan.end_date, plan.total_weeks, plan.status,
                 dumps_json(phases), dumps_json(plan.metadata), utc_now_iso()),
            )
        return await self.get_active(plan.user_id) or plan

    async def get_active(self, user_id: str) -> Optional[TrainingPlan]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM training_plans
                   WHERE user_id = ? AND status = 'active'
                   ORDER BY start_date DESC LIMIT 1""",
                (user_id,),
            )
            return self._row_to_plan(rows[0]) if rows else None

    # -- weekly summaries ----------------------------------------------------

    async def save_week(self, week: WeeklySummary) -> WeeklySummary:
        """Insert or replace the week starting on ``week.start_date`` (one row per user and start)."""
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO weekly_summaries
                   (id, user_id, plan_id, week_number, start_date, end_date, status,
                    planned_miles, actual_miles, summary, workouts_completed,
                    workouts_skipped, total_duration_minutes, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(user_id, start_date) DO UPDATE SET
                     plan_id = excluded.plan_id, week_number = excluded.week_number,
                     end_date = excluded.end_date, status = excluded.status,
                     planned_miles = excluded.planned_miles, actual_miles = excluded.actual_miles,
                     summary = excluded.summary, workouts_completed = excluded.workouts_completed,
                     workouts_skipped = excluded.workouts_skipped,
                     total_duration_minutes = excluded.total_duration_minutes,
                     updated_at = excluded.updated_at""",
                (week.id or str(uuid.uuid4()), week.user_id, week.plan_id, week.week_number,
                 week.start_date, week.end_date, week.status, week.planned_miles,
                 week.actual_miles, week.summary, week.workouts_completed,
                 week.workouts_skipped, week.total_duration_minutes, utc_now_iso()),
            )
        return await self.get_week_containing(week.user_id, week.start_date)

    async def find_recent_summaries(self, user_id: str, limit: int = 4) -> list[WeeklySummary]:
        """Last *limit* completed weeks that carry a summary, oldest first."""
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM weekly_summaries
                   WHERE user_id = ? AND status = 'completed' AND summary IS NOT NULL
                   ORDER BY week_number DESC LIMIT ?""",
                (user_id, limit),
            )
        return [self._row_to_week(r) for r in reversed(rows)]

    async def get_week_containing(self, user_id: str, day: str) -> Optional[WeeklySummary]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM weekly_summaries
                   WHERE user_id = ? AND start_date <= ? AND end_date >= ?
                   LIMIT 1""",
                (user_id, day, day),
            )
            return self._row_to_week(rows[0]) if rows else None

    @staticmethod
    def _row_to_plan(row) -> TrainingPlan:
        phases = [
            PlanPhase(
                name=p.get("name", ""),
                start_week=int(p.get("startWeek", 0)),
                end_week=int(p.get("endWeek", 0)),
                focus=p.get("focus", ""),
            )
            for p in loads_json(row["phases"], [])
        ]
        return TrainingPlan(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"] or "",
            goal_event=row["goal_event"],
            goal_time=row["goal_time"],
            start_date=row["start_date"] or "",
            end_date=row["end_date"] or "",
            total_weeks=row["total_weeks"],
            status=row["status"] or "active",
            phases=phases,
            metadata=loads_json(row["metadata"], {}),
            created_at=row["created_at"] or "",
        )

    @staticmethod
    def _row_to_week(row) -> WeeklySummary:
        return WeeklySummary(
            id=row["id"],
            user_id=row["user_id"],
            plan_id=row["plan_id"],
            week_number=row["week_number"] or 0,
            start_date=row["start_date"] or "",
            end_date=row["end_date"] or "",
            status=row["status"] or "upcoming",
            planned_miles=row["planned_miles"],
            actual_miles=row["actual_miles"],
            summary=row["summary"],
            workouts_completed=row["workouts_completed"],
            workouts_skipped=row["workouts_skipped"],
            total_duration_minutes=row["total_duration_minutes"],
            updated_at=row["updated_at"] or "",
        )
