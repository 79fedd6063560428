# proofstreak/models/goal.py
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime
from typing import Optional, List, Dict, Any
from enum import Enum
import logging

from proofstreak.utils.datetime_utils import DateTimeUtils

class Frequency(Enum):
    # WEEKLY는 저장/표시만 되고, 판정은 DAILY와 같은 하루 주기로 이루어집니다.
    DAILY = "daily"
    WEEKLY = "weekly"

@dataclass
class Goal:
    """
    Firestore 'users/{user_id}/goals' 하위 컬렉션 문서 구조.
    사용자가 매일 마감 시간 전에 인증해야 하는 반복 목표입니다.
    """
    goal_id: str
    user_id: str
    title: str
    due_time: str  # "6:00 PM" 형식, 시간대 정보 없음
    frequency: Frequency = Frequency.DAILY
    completed_dates: List[str] = field(default_factory=list)  # 'YYYY-MM-DD', 추가만 가능
    last_completed: Optional[datetime] = None
    current_streak: int = 0
    longest_streak: int = 0
    total_completions: int = 0
    missed_today: bool = False
    missed_date: Optional[str] = None  # missed_today가 가리키는 날짜 ('YYYY-MM-DD')
    is_private: bool = False
    created_at: Optional[datetime] = None  # 예전 문서에는 없을 수 있음

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Goal":
        """
        Firestore 문서 딕셔너리로부터 Goal 인스턴스를 생성합니다.
        예전 문서에 없는 필드는 기본값을 사용하고, 모르는 필드는 무시합니다.
        """
        known = {f.name for f in fields(cls)}
        processed_data = {k: v for k, v in data.items() if k in known}

        frequency_str = processed_data.get('frequency')
        if isinstance(frequency_str, str):
            try:
                processed_data['frequency'] = Frequency(frequency_str)
            except ValueError:
                logging.warning(f"Invalid frequency '{frequency_str}' for goal {processed_data.get('goal_id')}. Defaulting to daily.")
                processed_data['frequency'] = Frequency.DAILY

        for counter in ('current_streak', 'longest_streak', 'total_completions'):
            if processed_data.get(counter) is None:
                processed_data[counter] = 0
        if processed_data.get('completed_dates') is None:
            processed_data['completed_dates'] = []
        processed_data['missed_today'] = bool(processed_data.get('missed_today', False))

        return cls(**DateTimeUtils.from_firestore(processed_data))

    def to_dict(self) -> Dict[str, Any]:
        goal_dict = asdict(self)
        goal_dict['frequency'] = self.frequency.value
        return goal_dict

@dataclass
class StreakResult:
    """목표 완료 기록 결과."""
    goal_id: str
    current_streak: int
    longest_streak: int
    on_time: bool
    completed_on: str  # 'YYYY-MM-DD'
    post_id: Optional[str] = None
