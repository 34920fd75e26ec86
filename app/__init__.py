# app/__init__.py

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
from typing import Optional, Dict, Any
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from flask_jwt_extended import JWTManager
import firebase_admin
from firebase_admin import credentials

# - 설정 및 예외
from app.core.config import config_by_name
from app.core.exceptions import AdoptionError

# - API 블루프린트
from app.api.listings.routes import listings_bp
from app.api.adoptions.routes import adoptions_bp
from app.api.notifications.routes import notifications_bp
from app.api.uploads.routes import uploads_bp

# - 서비스 모듈
from app.services.storage_service import StorageService
from app.services.notification_service import NotificationService
from app.api.listings.services import ListingService
from app.api.adoptions.services import AdoptionRequestService
from app.api.adoptions.workflow import AdoptionWorkflowService


def _init_firebase(app: Flask):
    if firebase_admin._apps:
        return
    cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
    if not cred_path or not os.path.exists(cred_path):
        raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
    cred = credentials.Certificate(cred_path)
    firebase_admin.initialize_app(cred, {
        'storageBucket': app.config['FIREBASE_STORAGE_BUCKET']
    })


def create_app(config_name: Optional[str] = None, services: Optional[Dict[str, Any]] = None):
    """
    Flask 애플리케이션 팩토리 함수.

    :param config_name: 'development', 'testing', 'production' 중 하나. 없으면 FLASK_ENV 사용
    :param services: 저장소 인스턴스를 직접 주입할 때 사용합니다 (테스트).
                     'listings', 'adoption_requests', 'storage', 'notifications' 키가 필요하며,
                     주입되면 Firebase 초기화를 건너뜁니다.
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

    # =====================================================================================
    # 5. 저장소 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    if services is None:
        _init_firebase(app)
        app.services = {}

        try:
            storage_instance = StorageService()
            storage_instance.init_app(app)
            app.services['storage'] = storage_instance
            logging.info("Storage service initialized successfully")
        except Exception as e:
            logging.error(f"Failed to initialize storage service: {e}")
            raise

        app.services['notifications'] = NotificationService()
        app.services['listings'] = ListingService()
        app.services['adoption_requests'] = AdoptionRequestService()
    else:
        app.services = dict(services)

    # 워크플로우 서비스는 네 개의 저장소를 주입받아 생성합니다.
    if 'adoption_workflow' not in app.services:
        app.services['adoption_workflow'] = AdoptionWorkflowService(
            listing_store=app.services['listings'],
            request_store=app.services['adoption_requests'],
            media_store=app.services['storage'],
            notification_sink=app.services['notifications'],
            link_template=app.config['NOTIFICATION_LINK_TEMPLATE'],
            cleanup_workers=app.config['MEDIA_CLEANUP_WORKERS']
        )
    logging.info("Adoption workflow service initialized successfully")

    # =====================================================================================
    # 6. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(listings_bp, url_prefix='/api/listings')
    app.register_blueprint(adoptions_bp, url_prefix='/api')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(uploads_bp, url_prefix='/api/uploads')

    # =====================================================================================
    # 7. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(AdoptionError)
    def handle_adoption_error(err):
        # 5xx 오류는 내부 메시지 대신 재시도 안내 문구만 전달합니다.
        message = str(err) if err.status_code < 500 else err.user_message
        return jsonify({"error_code": err.error_code, "message": message}), err.status_code

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        if isinstance(err, HTTPException):
            return jsonify({"error_code": err.name.upper().replace(" ", "_"), "message": err.description}), err.code
        # 다른 핸들러에서 처리되지 않은 모든 예외를 여기서 처리
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
