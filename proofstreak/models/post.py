# proofstreak/models/post.py
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional, Dict, Any, FrozenSet, Type

from proofstreak.utils.datetime_utils import DateTimeUtils

class PostType(Enum):
    """피드 게시물 유형. 새 유형을 추가하면 아래 두 매핑도 반드시 채워야 합니다."""
    GOAL_CREATED = "goal_created"
    PROOF_POST = "proof_post"
    MISSED_GOAL = "missed_goal"
    STREAK_WARNING = "streak_warning"

class ReactionType(Enum):
    CHEER = "cheer"
    NUDGE = "nudge"
    TOMATO = "tomato"

def empty_reactions() -> Dict[str, int]:
    return {r.value: 0 for r in ReactionType}

@dataclass
class Post:
    """
    Firestore 'posts' 컬렉션 문서의 공통 필드.
    생성 이후에는 reactions / reacted_users 필드만 변경됩니다.
    """
    post_type: ClassVar[PostType]

    post_id: str
    user_id: str
    user_display_name: str
    timestamp: datetime
    goal_id: Optional[str] = None
    reactions: Dict[str, int] = field(default_factory=empty_reactions)
    reacted_users: Dict[str, Dict[str, bool]] = field(default_factory=dict)  # {reaction: {user_id: bool}}

@dataclass
class GoalCreatedPost(Post):
    post_type: ClassVar[PostType] = PostType.GOAL_CREATED
    message: str = ""

@dataclass
class ProofPost(Post):
    post_type: ClassVar[PostType] = PostType.PROOF_POST
    caption: Optional[str] = None
    image_url: Optional[str] = None
    completed: bool = True

@dataclass
class MissedGoalPost(Post):
    post_type: ClassVar[PostType] = PostType.MISSED_GOAL
    message: str = ""

@dataclass
class StreakWarningPost(Post):
    post_type: ClassVar[PostType] = PostType.STREAK_WARNING
    message: str = ""


POST_CLASSES: Dict[PostType, Type[Post]] = {
    PostType.GOAL_CREATED: GoalCreatedPost,
    PostType.PROOF_POST: ProofPost,
    PostType.MISSED_GOAL: MissedGoalPost,
    PostType.STREAK_WARNING: StreakWarningPost,
}

# 게시물 유형별로 허용되는 리액션
ALLOWED_REACTIONS: Dict[PostType, FrozenSet[ReactionType]] = {
    PostType.GOAL_CREATED: frozenset({ReactionType.CHEER}),
    PostType.PROOF_POST: frozenset({ReactionType.CHEER}),
    PostType.MISSED_GOAL: frozenset({ReactionType.TOMATO}),
    PostType.STREAK_WARNING: frozenset({ReactionType.NUDGE}),
}

def _check_exhaustive() -> None:
    """모든 PostType이 두 매핑에 빠짐없이 등록되어 있는지 모듈 로드 시점에 확인합니다."""
    for name, table in (("POST_CLASSES", POST_CLASSES), ("ALLOWED_REACTIONS", ALLOWED_REACTIONS)):
        missing = set(PostType) - set(table)
        if missing:
            raise RuntimeError(f"{name}에 등록되지 않은 게시물 유형: {sorted(m.value for m in missing)}")
    for post_type, post_cls in POST_CLASSES.items():
        if post_cls.post_type is not post_type:
            raise RuntimeError(f"{post_cls.__name__}.post_type이 {post_type.value}와 일치하지 않습니다.")

_check_exhaustive()


def post_to_dict(post: Post) -> Dict[str, Any]:
    """Post 객체를 Firestore 저장용 딕셔너리로 변환합니다. 'type' 필드가 유형 태그입니다."""
    post_dict = asdict(post)
    post_dict['type'] = post.post_type.value
    return post_dict

def post_from_dict(data: Dict[str, Any]) -> Post:
    """'type' 태그에 맞는 Post 하위 클래스 인스턴스를 생성합니다."""
    post_cls = POST_CLASSES[PostType(data.get('type'))]
    known = {f.name for f in fields(post_cls)}
    processed_data = {k: v for k, v in data.items() if k in known}
    processed_data['reactions'] = {**empty_reactions(), **(processed_data.get('reactions') or {})}
    processed_data['reacted_users'] = processed_data.get('reacted_users') or {}
    return post_cls(**DateTimeUtils.from_firestore(processed_data))
