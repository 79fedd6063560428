# proofstreak/api/goals/schemas.py
from marshmallow import Schema, fields, validate

from proofstreak.utils.datetime_utils import DUE_TIME_PATTERN

class GoalCreateSchema(Schema):
    """POST /api/goals 요청 본문의 유효성을 검사합니다."""
    title = fields.Str(required=True, validate=validate.Length(min=1, max=100, error="목표 제목은 1~100자 사이여야 합니다."))
    due_time = fields.Str(required=True, validate=validate.Regexp(DUE_TIME_PATTERN, error="마감 시간은 'H:MM AM/PM' 형식이어야 합니다."))
    frequency = fields.Str(load_default="daily", validate=validate.OneOf(["daily", "weekly"]))

class CompletionCreateSchema(Schema):
    """
    POST /api/goals/{goal_id}/completions
    업로드 URL로 올린 인증 사진의 경로와 캡션을 받습니다.
    """
    file_path = fields.Str(required=True, error_messages={"required": "인증 사진 경로(file_path)는 필수입니다."})
    caption = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=500))

class GoalResponseSchema(Schema):
    """목표 정보 응답 형식."""
    goal_id = fields.Str(required=True)
    title = fields.Str(required=True)
    frequency = fields.Str(required=True)
    due_time = fields.Str(required=True)
    completed_dates = fields.List(fields.Str())
    last_completed = fields.DateTime(allow_none=True)
    current_streak = fields.Int(required=True)
    longest_streak = fields.Int(required=True)
    total_completions = fields.Int(required=True)
    missed_today = fields.Bool(required=True)
    is_private = fields.Bool()
    created_at = fields.DateTime(allow_none=True)

    # 서비스 로직에서 채워주는 응답 전용 필드
    completed_today = fields.Bool(dump_only=True, dump_default=False)
    past_due = fields.Bool(dump_only=True, dump_default=False)

class StreakResultSchema(Schema):
    goal_id = fields.Str(required=True)
    current_streak = fields.Int(required=True)
    longest_streak = fields.Int(required=True)
    on_time = fields.Bool(required=True)
    completed_on = fields.Str(required=True)
    post_id = fields.Str(allow_none=True)
