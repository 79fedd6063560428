# proofstreak/api/reactions/services.py
import logging
from dataclasses import dataclass

from firebase_admin import firestore

from proofstreak.core.errors import (
    ProofStreakError, InvalidReactionError, PostNotFoundError, ReactionPersistError
)
from proofstreak.models.post import ALLOWED_REACTIONS, PostType, ReactionType
from proofstreak.utils.datetime_utils import LocalClock

@dataclass
class ReactionState:
    """리액션 변경 후 UI가 낙관적 상태를 맞추는 데 쓰는 결과."""
    post_id: str
    reaction_type: str
    count: int
    reacted: bool


class ReactionService:
    """
    게시물 리액션(cheer, nudge, tomato) 카운터와 사용자별 리액션 여부를 관리합니다.
    - 카운터는 firestore.Increment로 원자적으로 증감합니다.
    - reacted_users 확인과 카운터 변경은 한 트랜잭션에서 이루어지므로 같은 사용자의 중복 리액션이 쌓이지 않습니다.
    - tomato 리액션은 리액션한 사용자가 아니라 게시물 작성자의 stats.tomato_count를 함께 증감합니다.
    """
    def __init__(self, db, clock: LocalClock):
        self.db = db
        self.clock = clock
        self.posts_ref = self.db.collection('posts')
        self.users_ref = self.db.collection('users')

    def add_reaction(self, post_id: str, reaction_type: str, user_id: str) -> ReactionState:
        return self._apply(post_id, reaction_type, user_id, adding=True)

    def remove_reaction(self, post_id: str, reaction_type: str, user_id: str) -> ReactionState:
        return self._apply(post_id, reaction_type, user_id, adding=False)

    def _parse_reaction(self, reaction_type: str) -> ReactionType:
        try:
            return ReactionType(reaction_type)
        except ValueError:
            raise InvalidReactionError(f"'{reaction_type}'은(는) 유효한 리액션이 아닙니다.")

    def _apply(self, post_id: str, reaction_type: str, user_id: str, adding: bool) -> ReactionState:
        reaction = self._parse_reaction(reaction_type)
        post_ref = self.posts_ref.document(post_id)
        transaction = self.db.transaction()
        delta = 1 if adding else -1

        @firestore.transactional
        def _apply_in_transaction(transaction):
            post_snapshot = post_ref.get(transaction=transaction)
            if not post_snapshot.exists:
                raise PostNotFoundError("게시물을 찾을 수 없습니다.")

            post_data = post_snapshot.to_dict()
            post_type = PostType(post_data.get('type'))
            if reaction not in ALLOWED_REACTIONS[post_type]:
                raise InvalidReactionError(f"{post_type.value} 게시물에는 '{reaction.value}' 리액션을 남길 수 없습니다.")

            count = (post_data.get('reactions') or {}).get(reaction.value) or 0
            reacted = bool(((post_data.get('reacted_users') or {}).get(reaction.value) or {}).get(user_id))

            # 이미 원하는 상태라면 아무것도 바꾸지 않습니다. (취소 시 카운터가 0 아래로 내려가지 않음)
            if reacted == adding:
                return ReactionState(post_id, reaction.value, count, reacted)

            transaction.update(post_ref, {
                f'reactions.{reaction.value}': firestore.Increment(delta),
                f'reacted_users.{reaction.value}.{user_id}': adding,
            })
            transaction.set(post_ref.collection('interactions').document(), {
                'type': reaction.value,
                'from': user_id,
                'action': 'add' if adding else 'remove',
                'timestamp': self.clock.now(),
            })

            if reaction is ReactionType.TOMATO:
                author_ref = self.users_ref.document(post_data.get('user_id'))
                transaction.set(author_ref, {'stats': {'tomato_count': firestore.Increment(delta)}}, merge=True)

            return ReactionState(post_id, reaction.value, count + delta, adding)

        try:
            return _apply_in_transaction(transaction)
        except ProofStreakError:
            raise
        except Exception as e:
            action = "추가" if adding else "취소"
            logging.error(f"리액션 {action} 실패 (post_id: {post_id}, type: {reaction.value}, user_id: {user_id}): {e}", exc_info=True)
            raise ReactionPersistError(f"리액션을 {action}하지 못했습니다. 다시 시도해주세요.") from e
