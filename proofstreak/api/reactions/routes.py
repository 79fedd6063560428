# proofstreak/api/reactions/routes.py
from flask import Blueprint, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from proofstreak.api.reactions.schemas import ReactionStateSchema
from proofstreak.core.errors import InvalidReactionError, PostNotFoundError, ReactionPersistError

# '/api/posts' 접두사로 등록됩니다.
reactions_bp = Blueprint('reactions_bp', __name__)

@reactions_bp.route('/<string:post_id>/reactions/<string:reaction_type>', methods=['POST'])
@jwt_required()
def add_reaction(post_id: str, reaction_type: str):
    """게시물에 리액션을 남깁니다. 이미 남긴 리액션이면 상태를 그대로 반환합니다."""
    return _change_reaction(post_id, reaction_type, adding=True)


@reactions_bp.route('/<string:post_id>/reactions/<string:reaction_type>', methods=['DELETE'])
@jwt_required()
def remove_reaction(post_id: str, reaction_type: str):
    return _change_reaction(post_id, reaction_type, adding=False)


def _change_reaction(post_id: str, reaction_type: str, adding: bool):
    reaction_service = current_app.services['reactions']
    user_id = get_jwt_identity()
    try:
        if adding:
            state = reaction_service.add_reaction(post_id, reaction_type, user_id)
        else:
            state = reaction_service.remove_reaction(post_id, reaction_type, user_id)
        return jsonify(ReactionStateSchema().dump(state)), 200
    except InvalidReactionError as e:
        return jsonify(e.to_dict()), 400
    except PostNotFoundError as e:
        return jsonify(e.to_dict()), 404
    except ReactionPersistError as e:
        return jsonify(e.to_dict()), 503
