# proofstreak/models/user.py
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Optional, List, Dict, Any

from proofstreak.utils.datetime_utils import DateTimeUtils

@dataclass
class UserStats:
    """User 문서 내부에 저장될 누적 통계."""
    posts_completed: int = 0
    tomato_count: int = 0

@dataclass
class User:
    """
    Firestore 'users' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    current_streak/longest_streak/last_streak_date는 모든 목표를 합친 전체 연속 기록입니다.
    """
    user_id: str
    display_name: str = "User"
    email: Optional[str] = None
    photo_url: Optional[str] = None
    friends: List[str] = field(default_factory=list)
    stats: UserStats = field(default_factory=UserStats)
    current_streak: int = 0
    longest_streak: int = 0
    last_streak_date: Optional[datetime] = None
    created_at: datetime = field(default_factory=DateTimeUtils.now)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        known = {f.name for f in fields(cls)}
        processed_data = {k: v for k, v in data.items() if k in known}

        stats = processed_data.get('stats') or {}
        processed_data['stats'] = UserStats(
            posts_completed=stats.get('posts_completed', 0) or 0,
            tomato_count=stats.get('tomato_count', 0) or 0,
        )
        processed_data['friends'] = list(processed_data.get('friends') or [])
        processed_data['display_name'] = processed_data.get('display_name') or "User"
        for counter in ('current_streak', 'longest_streak'):
            if processed_data.get(counter) is None:
                processed_data[counter] = 0

        return cls(**DateTimeUtils.from_firestore(processed_data))
