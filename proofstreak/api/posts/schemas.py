# proofstreak/api/posts/schemas.py
from marshmallow import Schema, fields, validate

class FeedQuerySchema(Schema):
    """GET /api/posts/feed 쿼리 파라미터의 유효성을 검사합니다."""
    scope = fields.Str(load_default="friends", validate=validate.OneOf(["friends", "mine", "all"]))
    limit = fields.Int(load_default=None, validate=validate.Range(min=1, max=100))

class PostResponseSchema(Schema):
    """피드 게시물 응답 형식. 유형('type')에 따라 사용되는 필드가 다릅니다."""
    post_id = fields.Str(required=True)
    type = fields.Str(required=True)
    user_id = fields.Str(required=True)
    user_display_name = fields.Str(required=True)
    goal_id = fields.Str(allow_none=True)
    timestamp = fields.DateTime(required=True)

    # goal_created / missed_goal / streak_warning
    message = fields.Str()
    # proof_post
    caption = fields.Str(allow_none=True)
    image_url = fields.Str(allow_none=True)
    image_download_url = fields.Str(allow_none=True)
    completed = fields.Bool()

    reactions = fields.Dict(keys=fields.Str(), values=fields.Int())
    reacted_users = fields.Dict(keys=fields.Str(), values=fields.Dict(keys=fields.Str(), values=fields.Bool()))
