# proofstreak/api/goals/test_streaks.py
from datetime import datetime, timezone

from proofstreak.api.goals.streaks import compute_next_streak
from proofstreak.utils.datetime_utils import LocalClock

def utc(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)

CLOCK = LocalClock('UTC')

def test_compute_next_streak():
    now = utc(2024, 1, 10, 12)
    assert compute_next_streak(5, utc(2024, 1, 9, 8), now, CLOCK) == 6
    assert compute_next_streak(5, utc(2024, 1, 8, 8), now, CLOCK) == 1
    assert compute_next_streak(0, None, now, CLOCK) == 1
    assert compute_next_streak(5, utc(2024, 1, 9, 8), now, CLOCK, on_time=False) == 1

def test_compute_next_streak_follows_local_calendar():
    seoul = LocalClock('Asia/Seoul')
    # 서울 기준 1월 10일 00:30과 1월 9일 23:30 (UTC로는 같은 날)
    now = utc(2024, 1, 9, 15, 30)
    previous = utc(2024, 1, 9, 14, 30)
    assert compute_next_streak(2, previous, now, seoul) == 3


def _user(services):
    return services.db.doc_data('users', 'u1')

def test_user_streak_requires_every_goal_completed(services, make_user):
    make_user('u1')
    run_id = services.goals.create_goal('u1', 'Run', '6:00 PM')['goal_id']
    read_id = services.goals.create_goal('u1', 'Read', '9:00 PM')['goal_id']

    services.clock.set(utc(2024, 1, 2, 8))
    services.goals.record_completion(run_id, 'u1')
    assert _user(services)['current_streak'] == 0

    services.goals.record_completion(read_id, 'u1')
    user = _user(services)
    assert user['current_streak'] == 1
    assert user['longest_streak'] == 1

def test_user_streak_counts_consecutive_days(services, make_user):
    make_user('u1')
    goal_id = services.goals.create_goal('u1', 'Run', '6:00 PM')['goal_id']

    for day in (2, 3, 4):
        services.clock.set(utc(2024, 1, day, 8))
        services.goals.record_completion(goal_id, 'u1')

    user = _user(services)
    assert user['current_streak'] == 3
    assert user['longest_streak'] == 3

def test_user_streak_is_applied_once_per_day(services, make_user):
    make_user('u1')
    goal_id = services.goals.create_goal('u1', 'Run', '6:00 PM')['goal_id']
    services.clock.set(utc(2024, 1, 2, 8))
    services.goals.record_completion(goal_id, 'u1')

    assert services.streaks.refresh_user_streak('u1') is None
    assert _user(services)['current_streak'] == 1

def test_user_streak_without_goals_is_noop(services, make_user):
    make_user('u1')
    assert services.streaks.refresh_user_streak('u1') is None
    assert _user(services)['current_streak'] == 0

def test_user_streak_errors_are_swallowed(services):
    # 목표는 있지만 사용자 문서가 없는 경우
    services.db.collection('users').document('ghost').collection('goals').document('g1').set({
        'title': 'Run', 'due_time': '6:00 PM', 'last_completed': services.clock.now(),
        'created_at': services.clock.now()
    })
    assert services.streaks.refresh_user_streak('ghost') is None

def test_user_streak_rereads_goals_when_sweep_commits_first(services, make_user):
    """갱신 도중 다른 목표가 놓침으로 기록되면, 재실행된 트랜잭션은 기록을 올리지 않습니다."""
    now = utc(2024, 1, 2, 20)
    services.clock.set(now)
    make_user('u1', current_streak=4, last_streak_date=utc(2024, 1, 1, 20))
    goals_ref = services.db.collection('users').document('u1').collection('goals')
    for goal_id in ('g1', 'g2'):
        goals_ref.document(goal_id).set({
            'title': goal_id, 'due_time': '11:00 PM', 'last_completed': now, 'created_at': utc(2023, 12, 1)
        })

    def concurrent_sweep():
        goals_ref.document('g2').update({
            'last_completed': utc(2024, 1, 1, 8), 'current_streak': 0,
            'missed_today': True, 'missed_date': '2024-01-02'
        })
        services.db.collection('users').document('u1').update({'current_streak': 0})

    services.db.before_next_commit(concurrent_sweep)

    assert services.streaks.refresh_user_streak('u1') is None
    assert _user(services)['current_streak'] == 0
