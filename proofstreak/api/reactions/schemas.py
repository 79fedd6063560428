# proofstreak/api/reactions/schemas.py
from marshmallow import Schema, fields

class ReactionStateSchema(Schema):
    """
    POST/DELETE /api/posts/{post_id}/reactions/{type}
    변경 후의 카운터와 내 리액션 여부를 응답합니다.
    """
    post_id = fields.Str(required=True)
    reaction_type = fields.Str(required=True)
    count = fields.Int(required=True)
    reacted = fields.Bool(required=True)
