# conftest.py
"""
테스트 공용 픽스처

- FakeFirestore: 문서/하위 컬렉션/쿼리/트랜잭션을 흉내내는 메모리 내 Firestore
  트랜잭션은 읽은 문서의 버전을 기록해 두었다가 커밋 시점에 바뀌었으면 Aborted를 발생시키고,
  firestore.transactional 대체 함수가 이를 받아 트랜잭션 함수를 다시 실행합니다.
- FrozenClock: 시각을 고정/이동할 수 있는 LocalClock
- app / client / auth_headers: 테스트용 Flask 앱과 JWT 헤더
"""
import copy
import functools
import itertools
import threading
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from firebase_admin import firestore
from flask_jwt_extended import create_access_token
from google.api_core.exceptions import Aborted, NotFound
from google.cloud.firestore_v1.transforms import ArrayUnion, Increment

from proofstreak import create_app
from proofstreak.api.goals.services import GoalService
from proofstreak.api.goals.streaks import UserStreakService
from proofstreak.api.goals.sweeper import MissedGoalSweeper
from proofstreak.api.posts.services import PostService
from proofstreak.api.reactions.services import ReactionService
from proofstreak.api.users.services import UserService
from proofstreak.services.cache_service import TTLCache
from proofstreak.utils.datetime_utils import LocalClock


# =====================================================================================
# 메모리 내 Firestore
# =====================================================================================
def _apply_value(current, new):
    """필드 하나에 새 값을 반영합니다. Increment / ArrayUnion 변환을 처리합니다."""
    if isinstance(new, Increment):
        return (current or 0) + new.value
    if isinstance(new, ArrayUnion):
        merged = list(current or [])
        for value in new.values:
            if value not in merged:
                merged.append(value)
        return merged
    if isinstance(new, dict):
        return {k: _apply_value(None, v) for k, v in new.items()}
    return copy.deepcopy(new)


def _deep_merge(target: dict, patch: dict) -> None:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = _apply_value(target.get(key), value)


def _set_dotted(target: dict, dotted_path: str, value) -> None:
    *parents, leaf = dotted_path.split('.')
    node = target
    for part in parents:
        if not isinstance(node.get(part), dict):
            node[part] = {}
        node = node[part]
    node[leaf] = _apply_value(node.get(leaf), value)


def _get_dotted(data: dict, dotted_path: str):
    node = data
    for part in dotted_path.split('.'):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeQuery:
    def __init__(self, db, collection_path, filters=(), orders=(), limit_count=None):
        self._db = db
        self._collection_path = collection_path
        self._filters = list(filters)
        self._orders = list(orders)
        self._limit = limit_count

    def _copy(self, **overrides):
        params = dict(filters=self._filters, orders=self._orders, limit_count=self._limit)
        params.update(overrides)
        return FakeQuery(self._db, self._collection_path, **params)

    def where(self, field_path=None, op_string=None, value=None, *, filter=None):
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        return self._copy(filters=self._filters + [(field_path, op_string, value)])

    def order_by(self, field_path, direction="ASCENDING"):
        return self._copy(orders=self._orders + [(field_path, direction)])

    def limit(self, count):
        return self._copy(limit_count=count)

    def _matches(self, data) -> bool:
        for field_path, op_string, value in self._filters:
            field_value = _get_dotted(data, field_path)
            if op_string == '==' and field_value != value:
                return False
            if op_string == 'in' and field_value not in value:
                return False
            if op_string not in ('==', 'in'):
                raise NotImplementedError(f"지원하지 않는 연산자: {op_string}")
        return True

    def stream(self, transaction=None):
        with self._db._lock:
            snapshots = [snap for snap in self._db._list_collection(self._collection_path) if self._matches(snap._data)]
            if transaction is not None:
                for snap in snapshots:
                    transaction._record_read(snap.reference.path, self._db._docs[snap.reference.path][1])
        for field_path, direction in reversed(self._orders):
            snapshots.sort(key=lambda s: _get_dotted(s._data, field_path), reverse=(direction == "DESCENDING"))
        if self._limit is not None:
            snapshots = snapshots[:self._limit]
        return iter(snapshots)


class FakeCollection(FakeQuery):
    def __init__(self, db, path):
        super().__init__(db, path)
        self.path = path
        self.id = path[-1]

    def document(self, document_id=None):
        return FakeDocumentRef(self._db, self.path + (document_id or uuid.uuid4().hex[:20],))


class FakeDocumentRef:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = path[-1]

    def collection(self, name):
        return FakeCollection(self._db, self.path + (name,))

    def get(self, transaction=None):
        with self._db._lock:
            data, version = self._db._docs.get(self.path, (None, 0))
            if transaction is not None:
                transaction._record_read(self.path, version)
            return FakeSnapshot(self, copy.deepcopy(data))

    def set(self, data, merge=False):
        self._db._commit_writes([('set', self.path, data, merge)])

    def update(self, data):
        self._db._commit_writes([('update', self.path, data, False)])

    def delete(self):
        self._db._commit_writes([('delete', self.path, None, False)])


class FakeTransaction:
    def __init__(self, db):
        self._db = db
        self._reads = {}
        self._writes = []

    def _begin(self):
        self._reads = {}
        self._writes = []

    def _record_read(self, path, version):
        if self._writes:
            raise ValueError("트랜잭션에서는 모든 읽기가 쓰기보다 먼저 이루어져야 합니다.")
        self._reads.setdefault(path, version)

    def set(self, reference, data, merge=False):
        self._writes.append(('set', reference.path, copy.deepcopy(data), merge))

    def update(self, reference, data):
        self._writes.append(('update', reference.path, copy.deepcopy(data), False))

    def delete(self, reference):
        self._writes.append(('delete', reference.path, None, False))

    def _commit(self):
        self._db._run_commit_hook()
        self._db._commit_writes(self._writes, expected_versions=self._reads)


class FakeFirestore:
    def __init__(self):
        self._docs = {}
        self._lock = threading.RLock()
        self._versions = itertools.count(1)
        self._commit_hook = None
        self.commit_count = 0

    def collection(self, name):
        return FakeCollection(self, (name,))

    def transaction(self):
        return FakeTransaction(self)

    def before_next_commit(self, callback):
        """다음 트랜잭션 커밋 직전에 한 번 실행할 함수를 등록합니다. (동시 실행 흉내)"""
        self._commit_hook = callback

    def _run_commit_hook(self):
        hook, self._commit_hook = self._commit_hook, None
        if hook is not None:
            hook()

    def _list_collection(self, collection_path):
        with self._lock:
            return [FakeSnapshot(FakeDocumentRef(self, path), copy.deepcopy(data))
                    for path, (data, _) in self._docs.items()
                    if path[:-1] == collection_path and data is not None]

    def _commit_writes(self, writes, expected_versions=None):
        with self._lock:
            for path, version in (expected_versions or {}).items():
                if self._docs.get(path, (None, 0))[1] != version:
                    raise Aborted(f"문서가 트랜잭션 도중 변경되었습니다: {'/'.join(path)}")

            staged = {}
            for op, path, data, merge in writes:
                current = staged[path] if path in staged else copy.deepcopy(self._docs.get(path, (None, 0))[0])
                if op == 'delete':
                    staged[path] = None
                elif op == 'set':
                    if merge and current is not None:
                        _deep_merge(current, data)
                        staged[path] = current
                    else:
                        new_doc = {}
                        _deep_merge(new_doc, data)
                        staged[path] = new_doc
                elif op == 'update':
                    if current is None:
                        raise NotFound(f"업데이트할 문서가 없습니다: {'/'.join(path)}")
                    for dotted_path, value in data.items():
                        _set_dotted(current, dotted_path, value)
                    staged[path] = current

            for path, data in staged.items():
                self._docs[path] = (data, next(self._versions))
            self.commit_count += 1

    # 테스트 편의 함수
    def doc_data(self, *path):
        data, _ = self._docs.get(tuple(path), (None, 0))
        return copy.deepcopy(data)

    def docs_in(self, *collection_path):
        return [{**snap.to_dict(), '_id': snap.id} for snap in self._list_collection(tuple(collection_path))]


def fake_transactional(to_wrap):
    """firestore.transactional 대체. Aborted가 발생하면 트랜잭션 함수를 처음부터 다시 실행합니다."""
    @functools.wraps(to_wrap)
    def wrapper(transaction, *args, **kwargs):
        for _ in range(5):
            transaction._begin()
            result = to_wrap(transaction, *args, **kwargs)
            try:
                transaction._commit()
            except Aborted:
                continue
            return result
        raise Aborted("트랜잭션 재시도 횟수를 초과했습니다.")
    return wrapper


# =====================================================================================
# Storage 버킷
# =====================================================================================
class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name

    def exists(self) -> bool:
        return self.name in self.bucket.existing

    def generate_signed_url(self, version, expiration, method, content_type=None):
        self.bucket.sign_count += 1
        return f"https://storage.test/{self.name}?method={method}&sig={self.bucket.sign_count}"


class FakeBucket:
    def __init__(self, existing=()):
        self.existing = set(existing)
        self.sign_count = 0

    def blob(self, name):
        return FakeBlob(self, name)


# =====================================================================================
# 시계
# =====================================================================================
class FrozenClock(LocalClock):
    """now()가 고정된 시각을 반환하는 시계. set()/advance()로 시간을 옮깁니다."""

    def __init__(self, current: datetime, tz_name: str = 'UTC'):
        super().__init__(tz_name)
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current

    def advance(self, **delta) -> None:
        self.current = self.current + timedelta(**delta)


def utc(year, month, day, hour=0, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


# =====================================================================================
# 픽스처
# =====================================================================================
@pytest.fixture(autouse=True)
def _fake_transactional(monkeypatch):
    monkeypatch.setattr(firestore, 'transactional', fake_transactional)


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def clock():
    # 1일차 오전 9시 (UTC)
    return FrozenClock(utc(2024, 1, 1, 9, 0))


@pytest.fixture
def make_user(fake_db, clock):
    """사용자 문서를 직접 만들어 주는 헬퍼"""
    def _make_user(user_id, display_name="User", friends=None, **extra):
        fake_db.collection('users').document(user_id).set({
            'user_id': user_id,
            'display_name': display_name,
            'email': None,
            'photo_url': None,
            'friends': list(friends or []),
            'stats': {'posts_completed': 0, 'tomato_count': 0},
            'current_streak': 0,
            'longest_streak': 0,
            'last_streak_date': None,
            'created_at': clock.now(),
            **extra
        })
        return user_id
    return _make_user


@pytest.fixture
def services(fake_db, clock):
    """Flask 앱 없이 서비스 객체들을 create_app()과 같은 방식으로 조립합니다."""
    bucket = FakeBucket()
    monotonic = SimpleNamespace(value=0.0)
    user_cache = TTLCache(300, clock=lambda: monotonic.value, name="user")

    users = UserService(fake_db, clock, user_cache=user_cache)
    posts = PostService(fake_db, clock, user_service=users)
    streaks = UserStreakService(fake_db, clock)
    goals = GoalService(fake_db, clock, post_service=posts, streak_service=streaks)
    sweeper = MissedGoalSweeper(fake_db, clock, post_service=posts, user_service=users)
    reactions = ReactionService(fake_db, clock)
    return SimpleNamespace(
        db=fake_db, clock=clock, bucket=bucket, user_cache=user_cache,
        users=users, posts=posts, streaks=streaks, goals=goals, sweeper=sweeper, reactions=reactions
    )


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def app(fake_db, bucket, clock):
    app = create_app('testing', db=fake_db, bucket=bucket, clock=clock)
    # 라우트 테스트에서는 놓친 목표 검사를 요청 스레드에서 바로 실행합니다.
    app.services['sweeper'].background = None
    yield app
    app.services['background'].shutdown(wait=True)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user_id):
        with app.app_context():
            token = create_access_token(identity=user_id)
        return {'Authorization': f'Bearer {token}'}
    return _auth_headers
