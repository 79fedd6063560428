# proofstreak/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import logging
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from flask_jwt_extended import JWTManager
import firebase_admin
from firebase_admin import credentials, firestore

# - 설정 및 공통 예외
from proofstreak.core.config import config_by_name
from proofstreak.core.errors import ProofStreakError

# - API 블루프린트
from proofstreak.api.auth.routes import auth_bp
from proofstreak.api.uploads.routes import uploads_bp
from proofstreak.api.users.routes import users_bp
from proofstreak.api.goals.routes import goals_bp
from proofstreak.api.posts.routes import posts_bp
from proofstreak.api.reactions.routes import reactions_bp

# - 서비스 모듈
from proofstreak.services.background_service import BackgroundRunner
from proofstreak.services.cache_service import TTLCache
from proofstreak.services.storage_service import StorageService
from proofstreak.api.users.services import UserService
from proofstreak.api.posts.services import PostService
from proofstreak.api.goals.services import GoalService
from proofstreak.api.goals.streaks import UserStreakService
from proofstreak.api.goals.sweeper import MissedGoalSweeper
from proofstreak.api.reactions.services import ReactionService
from proofstreak.utils.datetime_utils import LocalClock

def create_app(config_name=None, db=None, bucket=None, clock=None):
    """
    Flask 애플리케이션 팩토리 함수.

    :param db: Firestore 클라이언트. 주어지면 Firebase 초기화를 건너뜁니다. (테스트용)
    :param bucket: Storage 버킷 객체 (테스트용)
    :param clock: '현재 시각'을 제공하는 LocalClock (테스트용)
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 확장 기능 및 외부 서비스 초기화
    # =====================================================================================
    JWTManager(app)

    if db is None:
        if not firebase_admin._apps:
            cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
            if not cred_path or not os.path.exists(cred_path):
                raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred, {
                'storageBucket': app.config['FIREBASE_STORAGE_BUCKET']
            })
        db = firestore.client()

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}

    # 5-1. 다른 서비스의 기반이 되는 공용 서비스 먼저 생성
    app.services['clock'] = clock or LocalClock(app.config['APP_TIMEZONE'])
    app.services['user_cache'] = TTLCache(app.config['USER_CACHE_TTL_SECONDS'], name="user")
    app.services['image_url_cache'] = TTLCache(app.config['IMAGE_URL_CACHE_TTL_SECONDS'], name="image_url")
    app.services['background'] = BackgroundRunner(max_workers=app.config['BACKGROUND_WORKERS'])

    try:
        storage_instance = StorageService(url_cache=app.services['image_url_cache'], bucket=bucket)
        storage_instance.init_app(app)
        app.services['storage'] = storage_instance
        logging.info("Storage service initialized successfully")
    except Exception as e:
        logging.error(f"Failed to initialize storage service: {e}")
        raise

    # 5-2. 다른 서비스를 주입받아야 하는 도메인 서비스 생성
    clock = app.services['clock']
    app.services['users'] = UserService(db, clock, user_cache=app.services['user_cache'])
    app.services['posts'] = PostService(
        db, clock,
        user_service=app.services['users'],
        storage_service=app.services['storage'],
        friends_query_chunk=app.config['FRIENDS_QUERY_CHUNK']
    )
    app.services['streaks'] = UserStreakService(db, clock)
    app.services['goals'] = GoalService(
        db, clock,
        post_service=app.services['posts'],
        streak_service=app.services['streaks']
    )
    app.services['sweeper'] = MissedGoalSweeper(
        db, clock,
        post_service=app.services['posts'],
        user_service=app.services['users'],
        background=app.services['background']
    )
    app.services['reactions'] = ReactionService(db, clock)

    # =====================================================================================
    # 6. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(uploads_bp, url_prefix='/api/uploads')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(goals_bp, url_prefix='/api/goals')
    app.register_blueprint(posts_bp, url_prefix='/api/posts')
    app.register_blueprint(reactions_bp, url_prefix='/api/posts')

    # =====================================================================================
    # 7. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(ProofStreakError)
    def handle_domain_error(err):
        return jsonify(err.to_dict()), err.status

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        # 다른 핸들러에서 처리되지 않은 모든 예외를 여기서 처리
        if isinstance(err, HTTPException):
            return err
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. 로깅 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
