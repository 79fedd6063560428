# proofstreak/api/uploads/routes.py

import logging
from flask import request, jsonify, Blueprint, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import Schema, fields, validate, ValidationError

# 이 블루프린트에 속한 모든 API는 '/api/uploads' 접두사 URL을 갖습니다.
uploads_bp = Blueprint('uploads', __name__)

class UploadUrlRequestSchema(Schema):
    """업로드 URL 발급 요청 유효성 검사를 위한 스키마"""
    upload_type = fields.Str(required=True, validate=validate.OneOf(["proof_image", "profile_image"]))
    filename = fields.Str(required=True)
    content_type = fields.Str(required=True)

class FilePathSchema(Schema):
    """파일 경로 유효성 검사를 위한 스키마"""
    file_path = fields.Str(required=True, error_messages={"required": "파일 경로는 필수입니다."})


@uploads_bp.route('/url', methods=['POST'])
@jwt_required()
def get_upload_url():
    """
    인증 사진/프로필 사진 업로드를 위한 Pre-signed URL을 발급합니다.
    클라이언트는 받은 URL로 직접 업로드한 뒤, 함께 받은 file_path를 인증 제출 시 전달합니다.
    """
    user_id = get_jwt_identity()
    try:
        data = UploadUrlRequestSchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        logging.warning(f"URL 발급 요청 실패 (잘못된 파라미터): {err.messages}")
        return jsonify({"error_code": "INVALID_PARAMETERS", "details": err.messages}), 400

    storage_service = current_app.services['storage']
    try:
        url_info = storage_service.generate_upload_url(user_id, data['upload_type'], data['filename'], data['content_type'])
        return jsonify(url_info), 200
    except ValueError as e:
        logging.warning(f"URL 발급 요청 실패 (잘못된 업로드 타입): {e}")
        return jsonify({"error_code": "INVALID_UPLOAD_TYPE", "message": str(e)}), 400
    except Exception as e:
        logging.error(f"Pre-signed URL 생성 중 서버 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "URL_GENERATION_FAILED", "message": "URL 생성 중 서버 오류가 발생했습니다."}), 500


@uploads_bp.route('/download-url', methods=['GET'])
@jwt_required()
def get_download_url():
    """저장된 인증 사진을 볼 수 있는 서명 URL을 반환합니다. (캐시 유효 시간 동안 같은 URL 재사용)"""
    storage_service = current_app.services['storage']
    try:
        data = FilePathSchema().load(request.args)
        download_url = storage_service.generate_download_url(data['file_path'])
        return jsonify({"download_url": download_url}), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except FileNotFoundError as e:
        return jsonify({"error_code": "FILE_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"다운로드 URL 생성 중 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "URL_GENERATION_FAILED", "message": "URL 생성 중 서버 오류가 발생했습니다."}), 500
