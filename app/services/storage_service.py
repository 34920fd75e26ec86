# app/services/storage_service.py
import re
import uuid
import logging
from datetime import timedelta
from typing import Optional
from flask import Flask
from firebase_admin import storage
from google.api_core.exceptions import NotFound

class StorageService:
    """
    Firebase Storage 관련 로직을 담당하는 서비스 클래스입니다.
    입양 게시글 이미지와 접종 증명서 파일은 모두 LISTING_MEDIA_PREFIX 폴더 바로 아래에 저장되며,
    파일명(공개 URL의 마지막 경로 조각)이 곧 Storage 키입니다.
    """

    # 업로드 목적별 파일명 접두사
    UPLOAD_TYPES = {
        "listing_image": "listing",
        "listing_photo": "photo",
        "vaccination_proof": "vaccination-proof",
    }

    # generate_upload_url 이 만드는 키 형식: {접두사}-{user_id}-{uuid4}[.확장자]
    UPLOAD_KEY_PATTERN = re.compile(
        r"^(?:" + "|".join(re.escape(p) for p in UPLOAD_TYPES.values()) + r")-(?P<user_id>.+)-"
        r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}(?:\.[A-Za-z0-9]+)?$"
    )

    @classmethod
    def key_owner(cls, key: Optional[str]) -> Optional[str]:
        """업로드 키에 기록된 사용자 ID를 반환합니다. 이 서비스가 만든 형식이 아니면 None."""
        if not key:
            return None
        match = cls.UPLOAD_KEY_PATTERN.match(key)
        return match.group('user_id') if match else None

    @classmethod
    def is_owned_by(cls, key: Optional[str], user_id: Optional[str]) -> bool:
        """키가 해당 사용자가 업로드한 파일인지 확인합니다."""
        return bool(user_id) and cls.key_owner(key) == user_id

    def __init__(self, bucket=None, prefix: str = "listings"):
        """
        실제 버킷 객체는 init_app 메서드를 통해 주입됩니다.
        테스트에서는 bucket 을 직접 전달할 수 있습니다.
        """
        self.bucket = bucket
        self.prefix = prefix

    def init_app(self, app: Flask):
        """
        Flask 앱 초기화 과정에서 호출되어 Storage 버킷을 설정합니다.

        :param app: Flask 애플리케이션 객체
        """
        bucket_name = app.config.get('FIREBASE_STORAGE_BUCKET')
        if not bucket_name:
            raise ValueError("FIREBASE_STORAGE_BUCKET 설정이 .env 또는 설정 파일에 필요합니다.")

        self.bucket = storage.bucket(bucket_name)
        self.prefix = app.config.get('LISTING_MEDIA_PREFIX', self.prefix).strip('/')
        logging.info("StorageService: Firebase Storage 서비스가 성공적으로 초기화되었습니다.")

    def _require_bucket(self):
        if not self.bucket:
            raise RuntimeError("StorageService가 초기화되지 않았습니다. init_app을 먼저 호출해주세요.")

    def blob_path(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def generate_upload_url(self, user_id: str, upload_type: str, filename: str, content_type: str) -> dict:
        """
        게시글 미디어를 업로드할 수 있는 Pre-signed URL을 생성합니다.
        클라이언트는 이 URL로 Firebase Storage에 직접 파일을 업로드(PUT)합니다.

        :param user_id: JWT에서 추출한 현재 로그인된 사용자의 고유 ID
        :param upload_type: "listing_image", "listing_photo", "vaccination_proof" 중 하나
        :param filename: 원본 파일명 (확장자 파악에 사용)
        :param content_type: 업로드할 파일의 MIME 타입 (예: "image/jpeg")
        :return: 업로드 URL, Storage 키, 파일 경로가 담긴 딕셔너리
        """
        self._require_bucket()

        name_prefix = self.UPLOAD_TYPES.get(upload_type)
        if not name_prefix:
            raise ValueError(f"'{upload_type}'은(는) 유효한 업로드 타입이 아닙니다.")

        extension = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
        key = f"{name_prefix}-{user_id}-{uuid.uuid4()}"
        if extension:
            key = f"{key}.{extension}"
        destination_blob_name = self.blob_path(key)

        blob = self.bucket.blob(destination_blob_name)

        # 15분 동안 유효한 업로드 전용 URL을 생성합니다.
        upload_url = blob.generate_signed_url(
            version="v4",
            expiration=timedelta(minutes=15),
            method="PUT",
            content_type=content_type
        )

        return {
            "upload_url": upload_url,
            "key": key,
            "file_path": destination_blob_name
        }

    def make_public_and_get_url(self, file_path: str) -> str:
        """
        업로드된 파일을 공개(public)로 설정하고 해당 URL을 반환합니다.

        :param file_path: 공개로 전환할 파일의 경로
        :return: 공개적으로 접근 가능한 URL
        """
        self._require_bucket()

        blob = self.bucket.blob(file_path)

        if not blob.exists():
            raise FileNotFoundError(f"파일을 찾을 수 없습니다: {file_path}")

        try:
            blob.make_public()
            return blob.public_url
        except Exception as e:
            logging.error(f"파일 공개 전환 실패: {e}", exc_info=True)
            raise

    def delete(self, key: Optional[str]) -> None:
        """
        Storage 키에 해당하는 파일을 삭제합니다.
        이미 없는 파일은 성공으로 간주하므로 여러 번 호출해도 안전합니다.
        그 외 오류는 호출자에게 전파됩니다.
        """
        if not key:
            return
        self._require_bucket()

        blob = self.bucket.blob(self.blob_path(key))
        try:
            blob.delete()
            logging.info(f"Storage 파일 삭제 완료 (key: {key})")
        except NotFound:
            logging.info(f"Storage 파일이 이미 존재하지 않습니다 (key: {key})")
