# proofstreak/api/users/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from proofstreak.api.users.schemas import UserPublicResponseSchema, UserEnsureSchema

users_bp = Blueprint('users_bp', __name__)

@users_bp.route('/<string:user_id>', methods=['GET'])
@jwt_required()
def get_user_profile(user_id: str):
    """특정 사용자의 공개 프로필 정보(통계, 전체 연속 기록 포함)를 조회합니다."""
    user_service = current_app.services['users']
    try:
        user_profile = user_service.get_user_profile(user_id)
        if not user_profile:
            return jsonify({"error_code": "USER_NOT_FOUND", "message": "사용자를 찾을 수 없습니다."}), 404

        return jsonify(UserPublicResponseSchema().dump(user_profile)), 200
    except Exception as e:
        logging.error(f"사용자 프로필 조회 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "PROFILE_FETCH_FAILED", "message": "프로필 조회 중 오류가 발생했습니다."}), 500


@users_bp.route('/me', methods=['PUT'])
@jwt_required()
def ensure_my_user_document():
    """
    현재 로그인된 사용자의 문서를 보장합니다.
    - 문서가 없으면 만들고, 예전 문서에 빠진 필드가 있으면 채워 넣습니다.
    """
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        data = UserEnsureSchema().load(request.get_json(silent=True) or {})
        user_service.ensure_user_document(user_id, data['display_name'], data['email'], data['photo_url'])
        return jsonify(UserPublicResponseSchema().dump(user_service.get_user_profile(user_id))), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except Exception as e:
        logging.error(f"사용자 문서 보장 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "사용자 정보를 저장하지 못했습니다."}), 500
