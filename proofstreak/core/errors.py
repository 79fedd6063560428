# proofstreak/core/errors.py
"""
도메인 예외 정의.

각 예외는 API 응답에 그대로 사용할 수 있도록 `error_code`와 HTTP 상태 코드를 가집니다.
- 검증 오류(400), 중복 완료(409), 리소스 없음(404), 저장 실패(503)
"""


class ProofStreakError(Exception):
    """모든 도메인 예외의 기반 클래스."""
    error_code = "INTERNAL_SERVER_ERROR"
    status = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error_code": self.error_code, "message": self.message}


# --- 검증 오류 ---
class DueTimeFormatError(ProofStreakError, ValueError):
    """마감 시간 문자열이 'H:MM AM/PM' 형식이 아닐 때 발생합니다."""
    error_code = "INVALID_DUE_TIME"
    status = 400


class InvalidReactionError(ProofStreakError, ValueError):
    error_code = "INVALID_REACTION"
    status = 400


class InvalidGoalError(ProofStreakError, ValueError):
    """공백을 제외한 목표 제목이 비어 있거나 너무 긴 경우 발생합니다."""
    error_code = "VALIDATION_ERROR"
    status = 400


# --- 상태 충돌 ---
class AlreadyCompletedTodayError(ProofStreakError):
    """같은 날 같은 목표를 두 번 완료하려고 할 때 발생합니다. UI에서는 '할 일 없음'으로 취급합니다."""
    error_code = "ALREADY_COMPLETED_TODAY"
    status = 409


# --- 리소스 없음 ---
class NotFoundError(ProofStreakError):
    error_code = "RESOURCE_NOT_FOUND"
    status = 404


class GoalNotFoundError(NotFoundError):
    error_code = "GOAL_NOT_FOUND"


class UserNotFoundError(NotFoundError):
    error_code = "USER_NOT_FOUND"


class PostNotFoundError(NotFoundError):
    error_code = "POST_NOT_FOUND"


# --- 저장 실패 (재시도 가능) ---
class PersistenceError(ProofStreakError):
    error_code = "PERSISTENCE_FAILED"
    status = 503


class CompletionPersistError(PersistenceError):
    error_code = "COMPLETION_FAILED"


class ReactionPersistError(PersistenceError):
    error_code = "REACTION_FAILED"
