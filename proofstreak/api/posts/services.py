# proofstreak/api/posts/services.py
import logging
from dataclasses import fields as dataclass_fields
from typing import Optional, Dict, Any, List

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from proofstreak.api.users.services import UserService
from proofstreak.core.errors import PostNotFoundError
from proofstreak.models.post import POST_CLASSES, PostType, post_to_dict, post_from_dict
from proofstreak.services.storage_service import StorageService
from proofstreak.utils.datetime_utils import DateTimeUtils, LocalClock

class PostService:
    """
    피드 게시물 생성 및 조회를 담당하는 서비스 클래스.
    목표 생성, 인증 제출, 목표 놓침 같은 도메인 이벤트를 'posts' 컬렉션 문서로 만듭니다.
    """
    def __init__(self, db, clock: LocalClock, user_service: UserService,
                 storage_service: Optional[StorageService] = None, friends_query_chunk: int = 30):
        self.db = db
        self.clock = clock
        self.user_service = user_service
        self.storage_service = storage_service
        self.friends_query_chunk = friends_query_chunk
        self.posts_ref = self.db.collection('posts')

    def create_post(self, post_fields: Dict[str, Any], transaction=None) -> str:
        """
        유형('type')에 맞는 게시물을 만들어 저장하고 post_id를 반환합니다.

        :param post_fields: 'type', 'user_id', 'user_display_name'과 유형별 필드
        :param transaction: 주어지면 같은 트랜잭션 안에서 저장합니다. (목표 상태 변경과 원자적으로 기록)
        """
        fields_copy = dict(post_fields)
        try:
            post_type = PostType(fields_copy.pop('type', None))
        except ValueError:
            raise ValueError(f"알 수 없는 게시물 유형입니다: {post_fields.get('type')!r}")

        post_cls = POST_CLASSES[post_type]
        allowed = {f.name for f in dataclass_fields(post_cls)} - {'post_id', 'timestamp', 'reactions', 'reacted_users'}
        unknown = set(fields_copy) - allowed
        if unknown:
            raise ValueError(f"{post_type.value} 게시물에 허용되지 않는 필드: {sorted(unknown)}")

        post_ref = self.posts_ref.document()
        new_post = post_cls(post_id=post_ref.id, timestamp=self.clock.now(), **fields_copy)
        post_data = DateTimeUtils.for_firestore(post_to_dict(new_post))

        if transaction is not None:
            transaction.set(post_ref, post_data)
        else:
            post_ref.set(post_data)
        logging.info(f"{post_type.value} 게시물 생성 (post_id: {post_ref.id}, user_id: {new_post.user_id})")
        return post_ref.id

    def get_post(self, post_id: str) -> Dict[str, Any]:
        doc = self.posts_ref.document(post_id).get()
        if not doc.exists:
            raise PostNotFoundError("게시물을 찾을 수 없습니다.")
        return self._to_response(doc.to_dict(), doc.id)

    def get_feed(self, user_id: str, scope: str = "friends", limit: int = 20) -> List[Dict[str, Any]]:
        """
        피드 게시물 목록을 최신순으로 조회합니다.
        - friends: 친구들의 게시물
        - mine: 내 게시물
        - all: 전체 게시물
        """
        if scope == "mine":
            query = (self.posts_ref.where(filter=FieldFilter('user_id', '==', user_id))
                     .order_by('timestamp', direction=firestore.Query.DESCENDING).limit(limit))
            docs = list(query.stream())
        elif scope == "all":
            query = self.posts_ref.order_by('timestamp', direction=firestore.Query.DESCENDING).limit(limit)
            docs = list(query.stream())
        elif scope == "friends":
            docs = self._get_friends_post_docs(user_id, limit)
        else:
            raise ValueError(f"'{scope}'은(는) 유효한 피드 범위가 아닙니다.")

        return [self._to_response(doc.to_dict(), doc.id) for doc in docs]

    def _get_friends_post_docs(self, user_id: str, limit: int) -> list:
        user_data = self.user_service.get_user(user_id)
        friend_ids = (user_data or {}).get('friends') or []
        if not friend_ids:
            return []

        # 'in' 쿼리는 값 개수 제한이 있으므로 나누어 조회한 뒤 합칩니다.
        docs = []
        for i in range(0, len(friend_ids), self.friends_query_chunk):
            chunk_ids = friend_ids[i:i + self.friends_query_chunk]
            query = (self.posts_ref.where(filter=FieldFilter('user_id', 'in', chunk_ids))
                     .order_by('timestamp', direction=firestore.Query.DESCENDING).limit(limit))
            docs.extend(query.stream())

        docs.sort(key=lambda d: DateTimeUtils.from_firestore(d.to_dict().get('timestamp')), reverse=True)
        return docs[:limit]

    def _to_response(self, post_data: Dict[str, Any], post_id: str) -> Dict[str, Any]:
        post = post_from_dict({**post_data, 'post_id': post_id})
        response = post_to_dict(post)
        image_path = response.get('image_url')
        if image_path and self.storage_service is not None:
            try:
                response['image_download_url'] = self.storage_service.generate_download_url(image_path)
            except Exception as e:
                logging.warning(f"이미지 URL 발급 실패 (post_id: {post_id}): {e}")
        return response
