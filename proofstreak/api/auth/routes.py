# proofstreak/api/auth/routes.py

import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt_identity
)
from firebase_admin import auth as firebase_auth
from marshmallow import ValidationError

from proofstreak.api.auth.schemas import FirebaseLoginSchema

auth_bp = Blueprint('auth_bp', __name__)

@auth_bp.route('/firebase', methods=['POST'])
def firebase_login():
    """
    Firebase ID 토큰을 검증하고 API용 Access/Refresh 토큰을 발급합니다.
    처음 로그인한 사용자는 이 시점에 사용자 문서가 만들어집니다.
    """
    try:
        data = FirebaseLoginSchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    try:
        decoded = firebase_auth.verify_id_token(data['id_token'])
    except (firebase_auth.InvalidIdTokenError, ValueError) as e:
        logging.warning(f"Firebase ID 토큰 검증 실패: {e}")
        return jsonify({"error_code": "INVALID_ID_TOKEN", "message": "유효하지 않거나 만료된 로그인 토큰입니다."}), 401

    user_id = decoded['uid']
    try:
        user_data = current_app.services['users'].ensure_user_document(
            user_id,
            display_name=decoded.get('name'),
            email=decoded.get('email'),
            photo_url=decoded.get('picture')
        )
    except Exception as e:
        logging.error(f"로그인 중 사용자 문서 처리 실패 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부 오류가 발생했습니다."}), 500

    return jsonify({
        "access_token": create_access_token(identity=user_id),
        "refresh_token": create_refresh_token(identity=user_id),
        "user_id": user_id,
        "display_name": (user_data or {}).get('display_name') or "User"
    }), 200


# --- 토큰 재발급 엔드포인트 ---
@auth_bp.route('/token/refresh', methods=['POST'])
@jwt_required(refresh=True) # Refresh Token만 허용하는 데코레이터
def refresh_token():
    """유효한 Refresh Token으로 새로운 Access Token을 발급합니다."""
    current_user_id = get_jwt_identity()
    new_access_token = create_access_token(identity=current_user_id)
    return jsonify(access_token=new_access_token), 200
