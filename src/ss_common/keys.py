"""Shared cache key namespace.

Other collaborators (the platform gateway, the admin dashboard) read and
write these keys directly, so the formats are a fixed contract.
"""

ACTIVITY_BUFFER_KEY = "activity_buffer"
LEADERBOARD_SYNC_JOB = "job:leaderboard"
DECAY_JOB = "job:decay"


def jail_key(guild_id: str, platform_user_id: str) -> str:
    return f"u:j:{guild_id}:{platform_user_id}"


def spam_window_key(guild_id: str, platform_user_id: str) -> str:
    return f"s:t:{guild_id}:{platform_user_id}"


def content_hash_key(guild_id: str, platform_user_id: str) -> str:
    return f"s:h:{guild_id}:{platform_user_id}"


def cooldown_key(guild_id: str, platform_user_id: str) -> str:
    return f"s:c:{guild_id}:{platform_user_id}"


def cluster_slot_key(slot_id: int) -> str:
    return f"cluster:slot:{slot_id}"


def job_key(job_name: str) -> str:
    return job_name if job_name.startswith("job:") else f"job:{job_name}"


def leaderboard_key(guild_id: str) -> str:
    return f"leaderboard:networth:{guild_id}"


def display_name_key(participant_id: str) -> str:
    return f"user:{participant_id}:username"


def voice_start_key(guild_id: str, platform_user_id: str) -> str:
    return f"voice:start:{guild_id}:{platform_user_id}"


def voice_meta_key(guild_id: str, platform_user_id: str) -> str:
    return f"voice:meta:{guild_id}:{platform_user_id}"
