"""Pydantic response models for mission and streak endpoints."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel


# --- Missions ---


class MissionResponse(BaseModel):
    id: int
    key: str
    title: str
    description: str
    activity_type: str
    progress: int
    target: int
    status: str
    reward_stars: int
    period_key: str


class MissionsResponse(BaseModel):
    period_key: str
    missions: list[MissionResponse]


class ClaimMissionResponse(BaseModel):
    mission: MissionResponse
    stars_balance: int


# --- Streaks ---


class StreakResponse(BaseModel):
    type: str
    count: int
    last_completed_date: date | None = None
    alive: bool


class StreaksResponse(BaseModel):
    streaks: list[StreakResponse]

