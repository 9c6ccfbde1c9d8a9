# ==============================
# File: src/mindbloom/progress.py
# ==============================
from __future__ import annotations
from datetime import date
from typing import Optional

from .models import UserProfile, WellnessSession
from .utils import new_id, utcnow

CHAT_XP_PER_MESSAGE = 5
CHAT_XP_CAP = 50


def xp_for_level(level: int) -> int:
    return int(100 * level ** 1.5)


def level_for_xp(total_xp: int) -> int:
    level = 1
    while total_xp >= xp_for_level(level + 1):
        level += 1
    return level


def update_streak(user: UserProfile, today: Optional[date] = None) -> UserProfile:
    """Same day: unchanged. Next day: +1. Any longer gap: back to 1."""
    today = today or date.today()
    if user.last_activity_date:
        days = (today - date.fromisoformat(user.last_activity_date)).days
    else:
        days = None
    if days == 0:
        return user
    user.streak = user.streak + 1 if days == 1 else 1
    user.longest_streak = max(user.longest_streak, user.streak)
    user.last_activity_date = today.isoformat()
    return user


def chat_session_xp(user_message_count: int) -> int:
    return min(CHAT_XP_CAP, CHAT_XP_PER_MESSAGE * max(0, user_message_count))


def record_chat_session(user: UserProfile, user_message_count: int, duration_minutes: int,
                        today: Optional[date] = None) -> WellnessSession:
    """Award chat XP, bump the streak and return the session record to persist."""
    xp = chat_session_xp(user_message_count)
    user.xp += xp
    user.avatar_level = level_for_xp(user.xp)
    update_streak(user, today)
    return WellnessSession(
        id=new_id("session"),
        user_id=user.id,
        kind="chat",
        duration_minutes=duration_minutes,
        xp_earned=xp,
        completed_at=utcnow().isoformat(),
    )
