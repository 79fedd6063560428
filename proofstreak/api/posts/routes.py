# proofstreak/api/posts/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from proofstreak.api.posts.schemas import FeedQuerySchema, PostResponseSchema
from proofstreak.core.errors import PostNotFoundError

posts_bp = Blueprint('posts_bp', __name__)

@posts_bp.route('/feed', methods=['GET'])
@jwt_required()
def get_feed():
    """
    피드 게시물 목록을 최신순으로 조회합니다.
    - scope: friends(기본) | mine | all
    - 피드를 열 때 내 목표의 놓침 여부를 백그라운드로 검사합니다.
    """
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    try:
        query = FeedQuerySchema().load(request.args)
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    current_app.services['sweeper'].sweep_in_background(user_id)
    limit = query['limit'] or current_app.config['FEED_PAGE_SIZE']
    try:
        posts = post_service.get_feed(user_id, query['scope'], limit)
        return jsonify({"posts": PostResponseSchema(many=True).dump(posts)}), 200
    except Exception as e:
        logging.error(f"피드 조회 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "피드 조회 중 오류가 발생했습니다."}), 500


@posts_bp.route('/<string:post_id>', methods=['GET'])
@jwt_required()
def get_post(post_id: str):
    post_service = current_app.services['posts']
    try:
        post = post_service.get_post(post_id)
        return jsonify(PostResponseSchema().dump(post)), 200
    except PostNotFoundError as e:
        return jsonify(e.to_dict()), 404
