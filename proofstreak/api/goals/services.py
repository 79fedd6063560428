# proofstreak/api/goals/services.py
import logging
from typing import Optional, Dict, Any, List

from firebase_admin import firestore

from proofstreak.api.goals.streaks import UserStreakService, compute_next_streak
from proofstreak.api.posts.services import PostService
from proofstreak.core.errors import (
    ProofStreakError, AlreadyCompletedTodayError, GoalNotFoundError, InvalidGoalError,
    UserNotFoundError, CompletionPersistError
)
from proofstreak.models.goal import Goal, Frequency, StreakResult
from proofstreak.models.post import PostType
from proofstreak.utils.datetime_utils import DateTimeUtils, LocalClock

MAX_TITLE_LENGTH = 100

class GoalService:
    """
    목표 생성/조회/삭제와 인증 제출 시의 완료 기록을 담당하는 서비스 클래스.
    """
    def __init__(self, db, clock: LocalClock, post_service: PostService,
                 streak_service: UserStreakService):
        self.db = db
        self.clock = clock
        self.post_service = post_service
        self.streak_service = streak_service
        self.users_ref = self.db.collection('users')

    def _goals_ref(self, user_id: str):
        return self.users_ref.document(user_id).collection('goals')

    def _to_goal(self, doc, user_id: str) -> Goal:
        return Goal.from_dict({**doc.to_dict(), 'goal_id': doc.id, 'user_id': user_id})

    # --- 목표 관리 ---
    def create_goal(self, user_id: str, title: str, due_time: str, frequency: str = "daily") -> Dict[str, Any]:
        """
        새 목표를 만들고 'goal_created' 게시물을 같은 트랜잭션으로 기록합니다.
        생성 당일에는 마감 시간이 지나도 놓친 목표로 처리되지 않습니다.
        """
        DateTimeUtils.parse_due_time(due_time)  # 형식 오류 시 DueTimeFormatError
        title = (title or "").strip()
        if not title or len(title) > MAX_TITLE_LENGTH:
            raise InvalidGoalError(f"목표 제목은 1~{MAX_TITLE_LENGTH}자 사이여야 합니다.")

        user_ref = self.users_ref.document(user_id)
        goal_ref = self._goals_ref(user_id).document()
        transaction = self.db.transaction()

        @firestore.transactional
        def _create_in_transaction(transaction):
            user_snapshot = user_ref.get(transaction=transaction)
            if not user_snapshot.exists:
                raise UserNotFoundError("사용자를 찾을 수 없습니다.")
            display_name = user_snapshot.to_dict().get('display_name') or "User"

            new_goal = Goal(
                goal_id=goal_ref.id,
                user_id=user_id,
                title=title,
                due_time=due_time,
                frequency=Frequency(frequency),
                created_at=self.clock.now()
            )
            transaction.set(goal_ref, DateTimeUtils.for_firestore(new_goal.to_dict()))
            self.post_service.create_post({
                'type': PostType.GOAL_CREATED.value,
                'user_id': user_id,
                'user_display_name': display_name,
                'goal_id': goal_ref.id,
                'message': f"🎯 {display_name} just committed to: {title}",
            }, transaction=transaction)
            return new_goal

        try:
            new_goal = _create_in_transaction(transaction)
        except Exception as e:
            logging.error(f"목표 생성 실패 (user_id: {user_id}): {e}", exc_info=True)
            raise

        logging.info(f"목표 생성 (user_id: {user_id}, goal_id: {new_goal.goal_id}, due_time: {due_time})")
        return new_goal.to_dict()

    def to_response(self, goal: Goal) -> Dict[str, Any]:
        """응답용 딕셔너리. 오늘 완료 여부와 마감 경과 여부를 함께 담습니다."""
        now = self.clock.now()
        goal_dict = goal.to_dict()
        goal_dict['completed_today'] = self.clock.is_today(goal.last_completed, now)
        goal_dict['past_due'] = DateTimeUtils.is_past_due(goal.due_time, now)
        return goal_dict

    def list_goals(self, user_id: str) -> List[Goal]:
        return [self._to_goal(doc, user_id) for doc in self._goals_ref(user_id).stream()]

    def get_goal(self, goal_id: str, user_id: str) -> Goal:
        doc = self._goals_ref(user_id).document(goal_id).get()
        if not doc.exists:
            raise GoalNotFoundError("목표를 찾을 수 없습니다.")
        return self._to_goal(doc, user_id)

    def get_available_goals(self, user_id: str) -> List[Goal]:
        """오늘 아직 인증하지 않은 목표 목록 (인증 화면에서 선택지로 사용)."""
        now = self.clock.now()
        return [goal for goal in self.list_goals(user_id)
                if not self.clock.is_today(goal.last_completed, now)]

    def is_goal_completed_today(self, goal_id: str, user_id: str) -> bool:
        doc = self._goals_ref(user_id).document(goal_id).get()
        if not doc.exists:
            return False
        return self.clock.is_today(self._to_goal(doc, user_id).last_completed)

    def delete_goal(self, goal_id: str, user_id: str) -> None:
        goal_ref = self._goals_ref(user_id).document(goal_id)
        if not goal_ref.get().exists:
            raise GoalNotFoundError("삭제할 목표가 없습니다.")
        goal_ref.delete()
        logging.info(f"목표 삭제 (user_id: {user_id}, goal_id: {goal_id})")

    # --- 완료 기록 ---
    def record_completion(self, goal_id: str, user_id: str, proof: Optional[Dict[str, Any]] = None) -> StreakResult:
        """
        인증 제출 시 목표 완료를 기록하고 연속 기록을 계산합니다.

        하나의 트랜잭션에서 다음을 모두 반영합니다.
        - 오늘 이미 완료한 목표면 AlreadyCompletedTodayError (중복 증가 방지)
        - completed_dates, last_completed, current_streak, longest_streak, total_completions, missed_today
        - 사용자 stats.posts_completed 증가
        - proof가 주어지면 'proof_post' 게시물 생성

        :param proof: {'caption': str, 'image_url': str} 인증 게시물 내용 (선택)
        :raises GoalNotFoundError, UserNotFoundError, AlreadyCompletedTodayError, CompletionPersistError
        """
        user_ref = self.users_ref.document(user_id)
        goal_ref = self._goals_ref(user_id).document(goal_id)
        now = self.clock.now()
        today = self.clock.day_key(now)
        transaction = self.db.transaction()

        @firestore.transactional
        def _complete_in_transaction(transaction):
            goal_snapshot = goal_ref.get(transaction=transaction)
            if not goal_snapshot.exists:
                raise GoalNotFoundError("목표를 찾을 수 없습니다.")
            user_snapshot = user_ref.get(transaction=transaction)
            if not user_snapshot.exists:
                raise UserNotFoundError("사용자를 찾을 수 없습니다.")

            goal = self._to_goal(goal_snapshot, user_id)
            if self.clock.is_today(goal.last_completed, now):
                raise AlreadyCompletedTodayError("오늘 이미 완료한 목표입니다.")

            on_time = not DateTimeUtils.is_past_due(goal.due_time, now)
            new_streak = compute_next_streak(goal.current_streak, goal.last_completed, now, self.clock, on_time=on_time)
            new_longest = max(new_streak, goal.longest_streak)

            transaction.update(goal_ref, {
                'completed_dates': firestore.ArrayUnion([today]),
                'last_completed': now,
                'current_streak': new_streak,
                'longest_streak': new_longest,
                'total_completions': firestore.Increment(1),
                'missed_today': False,
                'missed_date': None,
            })
            transaction.update(user_ref, {'stats.posts_completed': firestore.Increment(1)})

            post_id = None
            if proof is not None:
                post_id = self.post_service.create_post({
                    'type': PostType.PROOF_POST.value,
                    'user_id': user_id,
                    'user_display_name': user_snapshot.to_dict().get('display_name') or "User",
                    'goal_id': goal_id,
                    'caption': proof.get('caption'),
                    'image_url': proof.get('image_url'),
                }, transaction=transaction)

            return StreakResult(
                goal_id=goal_id,
                current_streak=new_streak,
                longest_streak=new_longest,
                on_time=on_time,
                completed_on=today,
                post_id=post_id
            )

        try:
            result = _complete_in_transaction(transaction)
        except ProofStreakError:
            raise
        except Exception as e:
            logging.error(f"목표 완료 기록 실패 (user_id: {user_id}, goal_id: {goal_id}): {e}", exc_info=True)
            raise CompletionPersistError("목표 완료를 저장하지 못했습니다. 다시 시도해주세요.") from e

        late_note = "" if result.on_time else " (마감 후 제출)"
        logging.info(f"목표 완료 (goal_id: {goal_id}) 연속 기록: {result.current_streak}{late_note}")

        # 전체 연속 기록 갱신은 실패해도 완료 결과에 영향을 주지 않습니다.
        self.streak_service.refresh_user_streak(user_id)
        return result
