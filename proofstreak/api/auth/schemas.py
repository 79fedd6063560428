#proofstreak/api/auth/schemas.py
from marshmallow import Schema, fields

class FirebaseLoginSchema(Schema):
    """Firebase 로그인 요청의 유효성을 검사하는 스키마"""
    id_token = fields.Str(
        required=True,
        metadata={"description": "클라이언트 Firebase Auth SDK가 발급한 ID 토큰"}
    )
