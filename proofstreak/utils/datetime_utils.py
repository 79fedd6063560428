# proofstreak/utils/datetime_utils.py
"""
프로젝트 전체에서 일관된 시간/날짜 처리를 위한 유틸리티 모듈

이 모듈의 목적:
1. Firestore에 저장되는 시각을 timezone-aware datetime으로 통일
2. '오늘', '어제' 같은 달력 날짜 판단을 설정된 로컬 시간대 기준으로 수행
3. 목표의 마감 시간 문자열("6:00 PM") 파싱과 마감 경과 여부 판단
"""

import logging
import re
from datetime import datetime, date, timezone, time, timedelta
from typing import Any, Optional, Tuple, Union

from dateutil import tz

from proofstreak.core.errors import DueTimeFormatError

logger = logging.getLogger(__name__)

# 클라이언트의 시간 선택기가 만들어내는 형식 그대로입니다. (예: "6:00 PM", "12:05 AM")
DUE_TIME_PATTERN = re.compile(r'^(1[0-2]|[1-9]):([0-5][0-9]) (AM|PM)\Z')


class DateTimeUtils:
    """시간/날짜 처리를 위한 중앙화된 유틸리티 클래스"""

    @staticmethod
    def now() -> datetime:
        """현재 시간을 UTC timezone-aware datetime으로 반환"""
        return datetime.now(timezone.utc)

    @staticmethod
    def to_date_string(d: Union[date, datetime]) -> str:
        """date 객체를 YYYY-MM-DD 형식 문자열로 변환"""
        try:
            return d.strftime('%Y-%m-%d')
        except Exception as e:
            logger.error(f"날짜 문자열 변환 실패: {d} - {e}")
            raise ValueError(f"date 객체를 문자열로 변환할 수 없습니다: {d}")

    @staticmethod
    def for_firestore(obj: Any) -> Any:
        """
        Firestore 저장을 위해 객체의 날짜/시간 필드를 변환

        변환 규칙:
        - date -> datetime (00:00:00 UTC)
        - timezone-naive datetime -> timezone-aware datetime (UTC)
        - dict/list 내부 재귀적 변환
        """
        if isinstance(obj, datetime):
            if obj.tzinfo is None:
                return obj.replace(tzinfo=timezone.utc)
            return obj.astimezone(timezone.utc)

        elif isinstance(obj, date):
            return datetime.combine(obj, time.min).replace(tzinfo=timezone.utc)

        elif isinstance(obj, dict):
            return {k: DateTimeUtils.for_firestore(v) for k, v in obj.items()}

        elif isinstance(obj, list):
            return [DateTimeUtils.for_firestore(item) for item in obj]

        return obj

    @staticmethod
    def from_firestore(obj: Any) -> Any:
        """
        Firestore에서 읽은 데이터의 datetime 필드를 UTC timezone-aware datetime으로 정규화
        """
        if isinstance(obj, datetime):
            if obj.tzinfo is None:
                return obj.replace(tzinfo=timezone.utc)
            return obj.astimezone(timezone.utc)

        elif isinstance(obj, dict):
            return {k: DateTimeUtils.from_firestore(v) for k, v in obj.items()}

        elif isinstance(obj, list):
            return [DateTimeUtils.from_firestore(item) for item in obj]

        return obj

    @staticmethod
    def parse_due_time(due_time: str) -> Tuple[int, int]:
        """
        'H:MM AM/PM' 형식의 마감 시간을 24시간제 (시, 분)으로 변환합니다.

        :raises DueTimeFormatError: 형식이 정확히 일치하지 않는 경우
        """
        if not isinstance(due_time, str):
            raise DueTimeFormatError(f"마감 시간은 문자열이어야 합니다: {due_time!r}")

        match = DUE_TIME_PATTERN.fullmatch(due_time)
        if not match:
            raise DueTimeFormatError(f"잘못된 마감 시간 형식입니다: {due_time!r} (예: '6:00 PM')")

        hours, minutes, period = int(match.group(1)), int(match.group(2)), match.group(3)
        if period == 'PM' and hours != 12:
            hours += 12
        elif period == 'AM' and hours == 12:
            hours = 0
        return hours, minutes

    @staticmethod
    def is_past_due(due_time: str, now: datetime) -> bool:
        """
        `now`가 같은 날짜의 마감 시각을 지났는지 판단합니다.

        마감 시각은 `now`와 같은 달력 날짜, 같은 시간대의 시:분으로 만들어지므로 매일 반복됩니다.
        형식이 잘못된 마감 시간은 예외 없이 '마감 전'(False)으로 처리합니다.
        """
        try:
            hours, minutes = DateTimeUtils.parse_due_time(due_time)
        except DueTimeFormatError as e:
            logger.warning(f"마감 시간 파싱 실패, 마감 전으로 처리합니다: {e}")
            return False

        due_at = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
        return now > due_at


class LocalClock:
    """
    '현재 시각'과 로컬 달력 날짜 계산을 담당하는 시계.

    서비스들은 이 객체를 주입받아 사용하므로, 테스트에서는 시각을 고정한 시계로 교체할 수 있습니다.
    """

    def __init__(self, tz_name: Optional[str] = None):
        self.tz = tz.gettz(tz_name) if tz_name else tz.tzlocal()
        if self.tz is None:
            raise ValueError(f"알 수 없는 시간대입니다: {tz_name}")

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def to_local(self, value: Optional[datetime]) -> Optional[datetime]:
        """저장된 시각을 로컬 시간대로 변환합니다. timezone-naive 값은 UTC로 간주합니다."""
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.tz)

    def local_date(self, value: Optional[datetime]) -> Optional[date]:
        local = self.to_local(value)
        return local.date() if local else None

    def day_key(self, value: Optional[datetime] = None) -> str:
        """로컬 달력 날짜를 'YYYY-MM-DD' 문자열로 반환합니다. 인자가 없으면 오늘입니다."""
        return DateTimeUtils.to_date_string(self.local_date(value or self.now()))

    def is_today(self, value: Optional[datetime], now: Optional[datetime] = None) -> bool:
        if value is None:
            return False
        now = now or self.now()
        return self.local_date(value) == self.local_date(now)

    def is_yesterday(self, value: Optional[datetime], now: Optional[datetime] = None) -> bool:
        if value is None:
            return False
        now = now or self.now()
        return self.local_date(value) == self.local_date(now) - timedelta(days=1)


# 편의를 위한 글로벌 함수들
def is_past_due(due_time: str, now: datetime) -> bool:
    """마감 경과 여부 판단"""
    return DateTimeUtils.is_past_due(due_time, now)

def parse_due_time(due_time: str) -> Tuple[int, int]:
    """마감 시간 문자열 파싱"""
    return DateTimeUtils.parse_due_time(due_time)

def for_firestore(obj: Any) -> Any:
    """Firestore 저장용 변환"""
    return DateTimeUtils.for_firestore(obj)

def from_firestore(obj: Any) -> Any:
    """Firestore 읽기용 변환"""
    return DateTimeUtils.from_firestore(obj)
