# proofstreak/core/config.py

import os # 환경 변수를 읽기 위해 사용합니다.

class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 토큰을 서명하는 데 사용되는 키입니다.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

    FIREBASE_STORAGE_BUCKET = os.getenv('FIREBASE_STORAGE_BUCKET')

    # 마감 시간과 '오늘'의 경계를 판단하는 기준 시간대입니다. 비어 있으면 서버의 로컬 시간대를 사용합니다. (예: 'Asia/Seoul')
    APP_TIMEZONE = os.getenv('APP_TIMEZONE') or None

    # 사용자 문서 캐시 유효 시간 (5분)
    USER_CACHE_TTL_SECONDS = int(os.getenv('USER_CACHE_TTL_SECONDS', 300))
    # 이미지 다운로드 URL 캐시 유효 시간 (1시간)
    IMAGE_URL_CACHE_TTL_SECONDS = int(os.getenv('IMAGE_URL_CACHE_TTL_SECONDS', 3600))

    # 놓친 목표 검사(sweep)를 실행하는 백그라운드 스레드 수
    BACKGROUND_WORKERS = int(os.getenv('BACKGROUND_WORKERS', 4))

    FEED_PAGE_SIZE = int(os.getenv('FEED_PAGE_SIZE', 20))
    # Firestore 'in' 쿼리 한 번에 넣을 수 있는 최대 값 개수
    FRIENDS_QUERY_CHUNK = int(os.getenv('FRIENDS_QUERY_CHUNK', 30))

class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다."""
    DEBUG = True
    # 개발용 Firebase 프로젝트의 서비스 계정 키 파일 경로
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH')

class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다."""
    TESTING = True
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'testing-secret-key-with-enough-length')
    APP_TIMEZONE = 'UTC'
    BACKGROUND_WORKERS = 1

class ProductionConfig(Config):
    """운영 환경을 위한 설정 클래스입니다."""
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')

# create_app 함수에서 FLASK_ENV 값에 따라 적절한 설정을 선택하는 데 사용됩니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
