# proofstreak/api/goals/routes.py
import logging
from dataclasses import asdict
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from proofstreak.api.goals.schemas import GoalCreateSchema, CompletionCreateSchema, GoalResponseSchema, StreakResultSchema
from proofstreak.core.errors import (
    DueTimeFormatError, InvalidGoalError, AlreadyCompletedTodayError, NotFoundError, PersistenceError
)

goals_bp = Blueprint('goals_bp', __name__)

@goals_bp.route('/', methods=['POST'])
@jwt_required()
def create_goal():
    """
    새로운 목표를 생성합니다.
    - 목표 생성과 함께 'goal_created' 피드 게시물이 만들어집니다.
    """
    goal_service = current_app.services['goals']
    user_id = get_jwt_identity()
    try:
        data = GoalCreateSchema().load(request.get_json())
        new_goal = goal_service.create_goal(user_id, data['title'], data['due_time'], data['frequency'])
        return jsonify(GoalResponseSchema().dump(new_goal)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except (DueTimeFormatError, InvalidGoalError) as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except Exception as e:
        logging.error(f"목표 생성 중 오류 발생: {e}", exc_info=True)
        return jsonify({"error_code": "GOAL_CREATION_FAILED", "message": "목표 생성 중 오류가 발생했습니다."}), 500


@goals_bp.route('/', methods=['GET'])
@jwt_required()
def list_goals():
    """
    내 목표 목록을 조회합니다.
    - 화면 진입 시마다 놓친 목표 검사를 백그라운드로 실행합니다. (응답은 기다리지 않음)
    """
    goal_service = current_app.services['goals']
    user_id = get_jwt_identity()
    current_app.services['sweeper'].sweep_in_background(user_id)
    try:
        goals = [goal_service.to_response(goal) for goal in goal_service.list_goals(user_id)]
        return jsonify({"goals": GoalResponseSchema(many=True).dump(goals)}), 200
    except Exception as e:
        logging.error(f"목표 목록 조회 중 오류 발생 (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "목표 목록 조회 중 오류가 발생했습니다."}), 500


@goals_bp.route('/available', methods=['GET'])
@jwt_required()
def list_available_goals():
    """오늘 아직 인증하지 않은 목표 목록을 조회합니다. (인증 화면용)"""
    goal_service = current_app.services['goals']
    user_id = get_jwt_identity()
    current_app.services['sweeper'].sweep_in_background(user_id)
    goals = [goal_service.to_response(goal) for goal in goal_service.get_available_goals(user_id)]
    return jsonify({"goals": GoalResponseSchema(many=True).dump(goals)}), 200


@goals_bp.route('/<string:goal_id>/completed-today', methods=['GET'])
@jwt_required()
def get_completed_today(goal_id: str):
    goal_service = current_app.services['goals']
    user_id = get_jwt_identity()
    return jsonify({"goal_id": goal_id, "completed_today": goal_service.is_goal_completed_today(goal_id, user_id)}), 200


@goals_bp.route('/<string:goal_id>', methods=['DELETE'])
@jwt_required()
def delete_goal(goal_id: str):
    goal_service = current_app.services['goals']
    user_id = get_jwt_identity()
    try:
        goal_service.delete_goal(goal_id, user_id)
        return Response(status=204)
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404


@goals_bp.route('/<string:goal_id>/completions', methods=['POST'])
@jwt_required()
def complete_goal(goal_id: str):
    """
    인증 사진을 제출하여 오늘의 목표를 완료합니다.
    - 성공 시 갱신된 연속 기록과 생성된 인증 게시물 ID를 201로 반환합니다.
    - 오늘 이미 완료한 목표면 409를 반환합니다. 클라이언트는 이를 '할 일 없음'으로 처리합니다.
    """
    goal_service = current_app.services['goals']
    user_id = get_jwt_identity()
    try:
        data = CompletionCreateSchema().load(request.get_json())
        result = goal_service.record_completion(goal_id, user_id, proof={
            'image_url': data['file_path'],
            'caption': data.get('caption'),
        })
        return jsonify(StreakResultSchema().dump(asdict(result))), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except AlreadyCompletedTodayError as e:
        return jsonify(e.to_dict()), 409
    except NotFoundError as e:
        return jsonify(e.to_dict()), 404
    except PersistenceError as e:
        return jsonify(e.to_dict()), 503


@goals_bp.route('/sweep', methods=['POST'])
@jwt_required()
def sweep_missed_goals():
    """
    놓친 목표 검사를 즉시 실행하고 새로 기록된 개수를 반환합니다. (당겨서 새로고침용)
    여러 번 호출해도 같은 날 같은 목표의 놓침은 한 번만 기록됩니다.
    """
    user_id = get_jwt_identity()
    missed_count = current_app.services['sweeper'].sweep(user_id)
    return jsonify({"missed_count": missed_count}), 200
