# proofstreak/api/users/schemas.py
from marshmallow import Schema, fields, validate

class UserStatsSchema(Schema):
    posts_completed = fields.Int(required=True)
    tomato_count = fields.Int(required=True)

class UserPublicResponseSchema(Schema):
    """
    GET /api/users/{user_id}
    다른 사용자의 프로필 정보를 응답할 때 사용하는 스키마.
    민감한 정보(email, friends)는 제외하고 공개 가능한 정보와 통계만 반환합니다.
    """
    user_id = fields.Str(required=True, dump_only=True)
    display_name = fields.Str(required=True)
    photo_url = fields.Str(allow_none=True)
    stats = fields.Nested(UserStatsSchema, required=True)
    current_streak = fields.Int(required=True)
    longest_streak = fields.Int(required=True)

class UserEnsureSchema(Schema):
    """
    PUT /api/users/me
    로그인 직후 클라이언트가 알고 있는 프로필 정보를 함께 보냅니다. 모든 필드는 선택입니다.
    """
    display_name = fields.Str(load_default=None, allow_none=True, validate=validate.Length(min=1, max=50))
    email = fields.Email(load_default=None, allow_none=True)
    photo_url = fields.Str(load_default=None, allow_none=True)
