"""Pydantic response models for leaderboard endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: int
    username: str
    display_name: str
    value: int


class LeaderboardStanding(BaseModel):
    rank: int
    value: int


class LeaderboardResponse(BaseModel):
    category: str
    period_key: str
    entries: list[LeaderboardEntryResponse]
    me: LeaderboardStanding | None = None
