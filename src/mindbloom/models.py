# ==============================
# File: src/mindbloom/models.py
# ==============================
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

from .utils import new_id, utcnow


class EmotionType(str, Enum):
    HAPPY = "happy"
    SAD = "sad"
    NEUTRAL = "neutral"
    CONCERNED = "concerned"
    ENCOURAGING = "encouraging"
    WELCOMING = "welcoming"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecommendedAction(str, Enum):
    MONITOR = "monitor"
    ESCALATE = "escalate"
    EMERGENCY = "emergency"


class MouthShape(str, Enum):
    CLOSED = "closed"
    SLIGHT = "slight"
    OPEN = "open"
    TEETH = "teeth"


@dataclass(frozen=True)
class Message:
    id: str
    author_is_user: bool
    text: str
    created_at: datetime
    emotion_tag: Optional[EmotionType] = None
    emotion_intensity: float = 0.0

    def __post_init__(self):
        if not 0.0 <= self.emotion_intensity <= 1.0:
            raise ValueError(f"emotion_intensity must be within [0, 1], got {self.emotion_intensity}")

    @classmethod
    def create(cls, author_is_user: bool, text: str, emotion_tag: Optional[EmotionType] = None,
               emotion_intensity: float = 0.0) -> "Message":
        return cls(
            id=new_id("user" if author_is_user else "ai"),
            author_is_user=author_is_user,
            text=text,
            created_at=utcnow(),
            emotion_tag=emotion_tag,
            emotion_intensity=emotion_intensity,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "authorIsUser": self.author_is_user,
            "text": self.text,
            "createdAt": self.created_at.isoformat(),
            "emotionTag": self.emotion_tag.value if self.emotion_tag else None,
            "emotionIntensity": self.emotion_intensity,
        }


@dataclass(frozen=True)
class CrisisAlert:
    matched_keywords: FrozenSet[str]
    severity: Severity
    recommended_action: RecommendedAction


@dataclass(frozen=True)
class AvatarVisualState:
    mouth_shape: MouthShape = MouthShape.CLOSED
    is_speaking: bool = False


# ── Service boundary results ───────────────────────────────────────────────

@dataclass(frozen=True)
class ReplyOk:
    text: str


@dataclass(frozen=True)
class ReplyErr:
    reason: str


ReplyResult = Union[ReplyOk, ReplyErr]


@dataclass(frozen=True)
class SpeechCompleted:
    pass


@dataclass(frozen=True)
class SpeechErrored:
    reason: str


SpeechResult = Union[SpeechCompleted, SpeechErrored]


@dataclass(frozen=True)
class Transcript:
    text: str
    confidence: float = 0.0
    alternatives: Tuple[Tuple[str, float], ...] = ()


# ── Persisted records ──────────────────────────────────────────────────────

@dataclass
class UserProfile:
    id: str
    nickname: str
    age: int = 0
    language: str = "en"
    avatar_level: int = 1
    xp: int = 0
    streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[str] = None  # ISO date of the last recorded activity
    created_at: str = field(default_factory=lambda: utcnow().isoformat())

    @classmethod
    def new(cls, nickname: str) -> "UserProfile":
        return cls(id=new_id("user"), nickname=nickname)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class WellnessSession:
    id: str
    user_id: str
    kind: str  # chat | breathing | journaling | exercise
    duration_minutes: int
    xp_earned: int
    completed_at: str
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WellnessSession":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)
