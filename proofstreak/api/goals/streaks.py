# proofstreak/api/goals/streaks.py
import logging
from datetime import datetime
from typing import Optional

from firebase_admin import firestore

from proofstreak.core.errors import UserNotFoundError
from proofstreak.models.goal import Goal
from proofstreak.utils.datetime_utils import LocalClock


def compute_next_streak(previous_streak: int, previous_date: Optional[datetime], now: datetime,
                        clock: LocalClock, on_time: bool = True) -> int:
    """
    연속 기록 계산 규칙.
    - 마감 후 완료 -> 1
    - 마감 전 완료이고 직전 완료가 정확히 어제 -> 이전 값 + 1
    - 그 외 (공백이 있거나 첫 완료) -> 1
    """
    if not on_time:
        return 1
    if clock.is_yesterday(previous_date, now):
        return (previous_streak or 0) + 1
    return 1


class UserStreakService:
    """
    모든 목표를 합친 사용자 전체 연속 기록을 관리합니다.
    오늘 모든 목표가 완료되었을 때만 기록을 올리며, 실패해도 호출자에게 예외를 전달하지 않습니다.
    기록을 0으로 되돌리는 것은 놓친 목표 검사(MissedGoalSweeper)의 책임입니다.
    """
    def __init__(self, db, clock: LocalClock):
        self.db = db
        self.clock = clock
        self.users_ref = self.db.collection('users')

    def refresh_user_streak(self, user_id: str) -> Optional[int]:
        """
        갱신된 전체 연속 기록을 반환합니다. 변경이 없으면 None.

        목표 목록도 트랜잭션 안에서 읽으므로, 도중에 놓친 목표 검사가 커밋하면
        트랜잭션이 다시 실행되어 검사가 0으로 되돌린 기록을 덮어쓰지 않습니다.
        """
        try:
            user_ref = self.users_ref.document(user_id)
            goals_ref = user_ref.collection('goals')
            now = self.clock.now()
            transaction = self.db.transaction()

            @firestore.transactional
            def _refresh_in_transaction(transaction):
                user_snapshot = user_ref.get(transaction=transaction)
                if not user_snapshot.exists:
                    raise UserNotFoundError(f"사용자를 찾을 수 없습니다: {user_id}")

                goals = [Goal.from_dict({**doc.to_dict(), 'goal_id': doc.id, 'user_id': user_id})
                         for doc in goals_ref.stream(transaction=transaction)]
                if not goals or not all(self.clock.is_today(goal.last_completed, now) for goal in goals):
                    return None

                user_data = user_snapshot.to_dict()
                last_streak_date = user_data.get('last_streak_date')
                # 오늘 이미 반영된 경우 재진입하지 않습니다.
                if self.clock.is_today(last_streak_date, now):
                    return None

                new_streak = compute_next_streak(user_data.get('current_streak') or 0, last_streak_date, now, self.clock)
                transaction.update(user_ref, {
                    'current_streak': new_streak,
                    'longest_streak': max(new_streak, user_data.get('longest_streak') or 0),
                    'last_streak_date': now,
                })
                return new_streak

            new_streak = _refresh_in_transaction(transaction)
            if new_streak is not None:
                logging.info(f"사용자 전체 연속 기록 갱신 (user_id: {user_id}): {new_streak}")
            return new_streak
        except Exception as e:
            logging.error(f"사용자 전체 연속 기록 갱신 실패 (user_id: {user_id}): {e}", exc_info=True)
            return None
