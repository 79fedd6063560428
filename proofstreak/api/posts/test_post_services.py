# proofstreak/api/posts/test_post_services.py
import pytest
from datetime import datetime, timedelta, timezone

from proofstreak.api.posts.services import PostService
from proofstreak.core.errors import PostNotFoundError
from proofstreak.services.storage_service import StorageService

def _post(services, user_id, minutes, **extra):
    services.clock.set(datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc) + timedelta(minutes=minutes))
    fields = {'type': 'goal_created', 'user_id': user_id, 'user_display_name': user_id,
              'goal_id': f'g-{user_id}', 'message': f'{user_id} at {minutes}'}
    fields.update(extra)
    return services.posts.create_post({k: v for k, v in fields.items() if v is not None})

@pytest.fixture
def friends(make_user):
    make_user('me', friends=['f1', 'f2', 'f3'])
    for user_id in ('f1', 'f2', 'f3', 'stranger'):
        make_user(user_id)

def test_create_post_validates_type_and_fields(services):
    with pytest.raises(ValueError):
        services.posts.create_post({'type': 'poll', 'user_id': 'u1', 'user_display_name': 'A'})
    with pytest.raises(ValueError):
        services.posts.create_post({'type': 'missed_goal', 'user_id': 'u1', 'user_display_name': 'A',
                                    'caption': 'not for this type'})

def test_create_and_get_post(services):
    post_id = _post(services, 'u1', 0)
    post = services.posts.get_post(post_id)

    assert post['post_id'] == post_id
    assert post['type'] == 'goal_created'
    assert post['reactions'] == {'cheer': 0, 'nudge': 0, 'tomato': 0}
    assert post['timestamp'] == datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)

def test_get_missing_post(services):
    with pytest.raises(PostNotFoundError):
        services.posts.get_post('nope')

def test_friends_feed_is_newest_first(services, friends):
    _post(services, 'f1', 1)
    _post(services, 'stranger', 2)
    _post(services, 'f2', 3)
    _post(services, 'me', 4)
    _post(services, 'f3', 5)

    feed = services.posts.get_feed('me', 'friends', limit=10)
    assert [p['user_id'] for p in feed] == ['f3', 'f2', 'f1']

def test_friends_feed_queries_in_chunks(services, friends):
    posts = PostService(services.db, services.clock, services.users, friends_query_chunk=2)
    for minutes, user_id in enumerate(['f3', 'f1', 'f2', 'f3', 'f1']):
        _post(services, user_id, minutes)

    feed = posts.get_feed('me', 'friends', limit=3)
    assert [p['user_id'] for p in feed] == ['f1', 'f3', 'f2']

def test_friends_feed_without_friends_is_empty(services, make_user):
    make_user('loner')
    _post(services, 'someone', 0)
    assert services.posts.get_feed('loner', 'friends') == []

def test_mine_and_all_scopes(services, friends):
    _post(services, 'me', 1)
    _post(services, 'f1', 2)
    _post(services, 'me', 3)

    assert [p['message'] for p in services.posts.get_feed('me', 'mine')] == ['me at 3', 'me at 1']
    assert len(services.posts.get_feed('me', 'all', limit=2)) == 2

def test_unknown_scope(services):
    with pytest.raises(ValueError):
        services.posts.get_feed('me', 'everyone')

def test_proof_post_gets_download_url(services, bucket):
    bucket.existing.add('proofs/u1/a.jpg')
    posts = PostService(services.db, services.clock, services.users, storage_service=StorageService(bucket=bucket))
    post_id = _post(services, 'u1', 0, type='proof_post', message=None, caption='done', image_url='proofs/u1/a.jpg')

    post = posts.get_post(post_id)
    assert post['image_url'] == 'proofs/u1/a.jpg'
    assert post['image_download_url'].startswith('https://storage.test/proofs/u1/a.jpg')

def test_missing_image_does_not_break_feed(services, bucket):
    posts = PostService(services.db, services.clock, services.users, storage_service=StorageService(bucket=bucket))
    post_id = _post(services, 'u1', 0, type='proof_post', message=None, caption='done', image_url='proofs/u1/gone.jpg')

    post = posts.get_post(post_id)
    assert 'image_download_url' not in post
