"""
application.store - The store handle passed to workflows, tools and skills.
"""

from __future__ import annotations

from dataclasses import dataclass

from runcoach.application.services.bulletin_board import BulletinBoard
from runcoach.infrastructure.persistence.health_repo import SQLiteHealthRepository
from runcoach.infrastructure.persistence.injury_repo import SQLiteInjuryRepository
from runcoach.infrastructure.persistence.plan_repo import SQLiteTrainingPlanRepository
from runcoach.infrastructure.persistence.user_repo import SQLiteUserRepository
from runcoach.infrastructure.persistence.workout_repo import SQLiteWorkoutRepository


@dataclass(frozen=True)
class Store:
    users: SQLiteUserRepository
    health: SQLiteHealthRepository
    workouts: SQLiteWorkoutRepository
    plans: SQLiteTrainingPlanRepository
    injuries: SQLiteInjuryRepository
    board: BulletinBoard
