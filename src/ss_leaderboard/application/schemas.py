"""Pydantic response schemas for ss_leaderboard API."""

from pydantic import BaseModel


class LeaderboardRow(BaseModel):
    rank: int
    participant_id: str
    display_name: str
    net_worth: str
    net_worth_display: str


class LeaderboardResponse(BaseModel):
    guild_id: str
    items: list[LeaderboardRow]
