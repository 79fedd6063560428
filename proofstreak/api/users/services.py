# proofstreak/api/users/services.py
import logging
from dataclasses import asdict
from typing import Optional, Dict, Any

from firebase_admin import firestore

from proofstreak.models.user import User
from proofstreak.services.cache_service import TTLCache
from proofstreak.utils.datetime_utils import DateTimeUtils, LocalClock

class UserService:
    """
    사용자 문서 조회/생성을 담당하는 서비스 클래스.
    - 게시물 작성자 이름처럼 자주 읽는 사용자 문서는 TTL 캐시를 거쳐 조회합니다.
    """
    def __init__(self, db, clock: LocalClock, user_cache: TTLCache):
        self.db = db
        self.clock = clock
        self.user_cache = user_cache
        self.users_ref = self.db.collection('users')

    def ensure_user_document(self, user_id: str, display_name: Optional[str] = None,
                             email: Optional[str] = None, photo_url: Optional[str] = None) -> Dict[str, Any]:
        """
        로그인 시 호출되어 사용자 문서가 존재하도록 보장합니다.
        - 문서가 없으면 기본 필드로 생성합니다.
        - 예전에 만들어진 문서에 빠진 필드(friends, stats 등)가 있으면 채워 넣습니다.
        """
        user_ref = self.users_ref.document(user_id)
        transaction = self.db.transaction()

        @firestore.transactional
        def _ensure_in_transaction(transaction):
            snapshot = user_ref.get(transaction=transaction)
            if not snapshot.exists:
                new_user = User(
                    user_id=user_id,
                    display_name=display_name or "User",
                    email=email,
                    photo_url=photo_url,
                    created_at=self.clock.now()
                )
                user_data = DateTimeUtils.for_firestore(asdict(new_user))
                transaction.set(user_ref, user_data)
                logging.info(f"사용자 문서 생성 (user_id: {user_id})")
                return user_data

            user_data = snapshot.to_dict()
            updates = {}
            if user_data.get('friends') is None:
                updates['friends'] = []
            stats = user_data.get('stats') or {}
            for stat_name in ('posts_completed', 'tomato_count'):
                if stat_name not in stats:
                    updates[f'stats.{stat_name}'] = 0
            for counter in ('current_streak', 'longest_streak'):
                if counter not in user_data:
                    updates[counter] = 0
            if updates:
                transaction.update(user_ref, updates)
                logging.info(f"사용자 문서에 누락된 필드 추가 (user_id: {user_id}): {list(updates.keys())}")
            return user_data

        try:
            _ensure_in_transaction(transaction)
        except Exception as e:
            logging.error(f"사용자 문서 보장 실패 (user_id: {user_id}): {e}", exc_info=True)
            raise
        finally:
            self.user_cache.invalidate(user_id)
        return self.users_ref.document(user_id).get().to_dict()

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        캐시를 거쳐 사용자 문서를 조회합니다.
        조회 실패는 로그만 남기고 None을 반환합니다.
        """
        if not user_id:
            return None

        def _load() -> Optional[Dict[str, Any]]:
            doc = self.users_ref.document(user_id).get()
            return doc.to_dict() if doc.exists else None

        try:
            return self.user_cache.get_or_load(user_id, _load)
        except Exception as e:
            logging.warning(f"사용자 캐시 조회 실패 (user_id: {user_id}): {e}")
            return None

    def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """공개 프로필 정보(통계, 전체 연속 기록 포함)를 캐시 없이 조회합니다."""
        doc = self.users_ref.document(user_id).get()
        if not doc.exists:
            return None
        user = User.from_dict({**doc.to_dict(), 'user_id': doc.id})
        return asdict(user)
