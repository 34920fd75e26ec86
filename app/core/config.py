# app/core/config.py

import os # 환경 변수를 읽기 위해 사용합니다.

class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 토큰 서명에 사용되는 키입니다.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')

    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')
    FIREBASE_STORAGE_BUCKET = os.getenv('FIREBASE_STORAGE_BUCKET')

    # 게시글 이미지와 접종 증명서가 저장되는 Storage 폴더입니다. 파일명이 곧 Storage 키입니다.
    LISTING_MEDIA_PREFIX = os.getenv('LISTING_MEDIA_PREFIX', 'listings')
    # 게시글 삭제 시 미디어 파일을 병렬로 삭제할 스레드 수입니다.
    MEDIA_CLEANUP_WORKERS = int(os.getenv('MEDIA_CLEANUP_WORKERS', 4))
    # 알림을 눌렀을 때 이동할 클라이언트 경로 형식입니다.
    NOTIFICATION_LINK_TEMPLATE = os.getenv('NOTIFICATION_LINK_TEMPLATE', '/post/{listing_id}')

class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다."""
    DEBUG = True
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH', Config.FIREBASE_CREDENTIALS_PATH)

class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다."""
    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'test-secret-key-for-adoption-workflow')
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    MEDIA_CLEANUP_WORKERS = 2

class ProductionConfig(Config):
    """운영 환경을 위한 설정 클래스입니다."""
    DEBUG = False

# FLASK_ENV 값에 따라 create_app 에서 설정 클래스를 선택합니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
