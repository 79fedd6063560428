# proofstreak/api/goals/sweeper.py
"""
놓친 목표 검사(sweep)

피드/목표/인증 화면이 열릴 때마다 클라이언트가 호출하는 검사입니다. 중앙 스케줄러가 없으므로
같은 사용자에 대해 여러 요청이 동시에, 반복해서 들어올 수 있습니다.

목표 하나를 '놓침'으로 처리하는 작업(상태 확인, missed_goal 게시물 생성, missed_today 설정,
연속 기록 초기화)은 목표 문서를 읽는 하나의 트랜잭션 안에서 이루어집니다.
동시에 실행된 다른 검사가 먼저 커밋하면 Firestore가 트랜잭션을 다시 실행하고,
재실행 시에는 missed_today가 이미 설정되어 있으므로 게시물이 중복 생성되지 않습니다.
"""
import logging
from concurrent.futures import Future
from datetime import datetime
from typing import Optional

from firebase_admin import firestore

from proofstreak.api.posts.services import PostService
from proofstreak.api.users.services import UserService
from proofstreak.models.goal import Goal
from proofstreak.models.post import PostType
from proofstreak.services.background_service import BackgroundRunner
from proofstreak.utils.datetime_utils import DateTimeUtils, LocalClock

logger = logging.getLogger(__name__)


class MissedGoalSweeper:
    def __init__(self, db, clock: LocalClock, post_service: PostService, user_service: UserService,
                 background: Optional[BackgroundRunner] = None):
        self.db = db
        self.clock = clock
        self.post_service = post_service
        self.user_service = user_service
        self.background = background
        self.users_ref = self.db.collection('users')

    def skip_reason(self, goal: Goal, now: datetime) -> Optional[str]:
        """
        놓친 목표가 아니면 그 이유를, 새로 놓친 목표면 None을 반환합니다.
        """
        # missed_date가 없는 예전 문서는 완료 전까지 놓침 상태를 유지합니다.
        if goal.missed_today and goal.missed_date in (None, self.clock.day_key(now)):
            return "already_missed"
        if self.clock.is_today(goal.last_completed, now):
            return "completed_today"
        if self.clock.is_today(goal.created_at, now):
            return "created_today"
        if not DateTimeUtils.is_past_due(goal.due_time, now):
            return "not_due"
        return None

    def sweep(self, user_id: str) -> int:
        """
        사용자의 모든 목표를 검사해 새로 놓친 목표를 기록하고, 기록한 개수를 반환합니다.
        검사는 보조 작업이므로 어떤 오류도 호출자에게 전달하지 않습니다.
        """
        try:
            user_data = self.user_service.get_user(user_id)
            if user_data is None:
                logger.warning(f"놓친 목표 검사 건너뜀: 사용자를 찾을 수 없음 (user_id: {user_id})")
                return 0
            display_name = user_data.get('display_name') or "User"
            goal_docs = list(self.users_ref.document(user_id).collection('goals').stream())
        except Exception as e:
            logger.error(f"놓친 목표 검사 실패 (user_id: {user_id}): {e}", exc_info=True)
            return 0

        now = self.clock.now()
        missed_count = 0
        for goal_doc in goal_docs:
            try:
                goal = Goal.from_dict({**goal_doc.to_dict(), 'goal_id': goal_doc.id, 'user_id': user_id})
                # 트랜잭션을 열기 전에 명백히 해당 없는 목표를 거릅니다.
                if self.skip_reason(goal, now):
                    continue
                if self._mark_missed(user_id, goal_doc.id, display_name, now):
                    missed_count += 1
            except Exception as e:
                # 한 목표의 실패가 다른 목표 검사를 막지 않도록 합니다.
                logger.error(f"목표 놓침 처리 실패 (user_id: {user_id}, goal_id: {goal_doc.id}): {e}", exc_info=True)

        return missed_count

    def sweep_in_background(self, user_id: str) -> Optional[Future]:
        """응답을 기다리지 않는 검사. 백그라운드 실행기가 없으면 바로 실행합니다."""
        if self.background is None:
            self.sweep(user_id)
            return None
        return self.background.submit(f"missed-goal-sweep:{user_id}", self.sweep, user_id)

    def _mark_missed(self, user_id: str, goal_id: str, display_name: str, now: datetime) -> bool:
        user_ref = self.users_ref.document(user_id)
        goal_ref = user_ref.collection('goals').document(goal_id)
        transaction = self.db.transaction()

        @firestore.transactional
        def _mark_in_transaction(transaction):
            goal_snapshot = goal_ref.get(transaction=transaction)
            if not goal_snapshot.exists:
                return False

            goal = Goal.from_dict({**goal_snapshot.to_dict(), 'goal_id': goal_id, 'user_id': user_id})
            if self.skip_reason(goal, now):
                return False

            self.post_service.create_post({
                'type': PostType.MISSED_GOAL.value,
                'user_id': user_id,
                'user_display_name': display_name,
                'goal_id': goal_id,
                'message': f"😢 Missed goal: {goal.title}",
            }, transaction=transaction)
            transaction.update(goal_ref, {
                'current_streak': 0,
                'missed_today': True,
                'missed_date': self.clock.day_key(now),
            })
            transaction.update(user_ref, {'current_streak': 0})
            return True

        marked = _mark_in_transaction(transaction)
        if marked:
            logger.info(f"목표 놓침 기록 (user_id: {user_id}, goal_id: {goal_id})")
        return marked
