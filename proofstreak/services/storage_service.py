# proofstreak/services/storage_service.py
import uuid
import logging
from datetime import timedelta
from typing import Optional
from flask import Flask
from firebase_admin import storage

from proofstreak.services.cache_service import TTLCache

class StorageService:
    """
    Firebase Storage 관련 로직을 담당하는 서비스 클래스입니다.
    인증 사진 업로드용 Pre-signed URL 발급과, 저장된 사진을 볼 수 있는 서명 URL 발급을 담당합니다.
    업로드 재시도 등 파일의 생명주기는 관리하지 않고, 게시물에는 파일 경로만 저장합니다.
    """

    # 'upload_type'별로 파일이 저장될 폴더
    PATH_MAP = {
        "proof_image": "proofs/{user_id}",
        "profile_image": "user_profiles/{user_id}",
    }

    def __init__(self, url_cache: Optional[TTLCache] = None, bucket=None):
        """
        :param url_cache: 다운로드 URL 캐시 (없으면 캐시하지 않음)
        :param bucket: 테스트 등에서 직접 주입하는 버킷 객체. 없으면 init_app에서 설정합니다.
        """
        self.bucket = bucket
        self.url_cache = url_cache

    def init_app(self, app: Flask):
        """
        Flask 앱 초기화 과정에서 호출되어 Storage 버킷을 설정합니다.
        """
        if self.bucket is not None:
            return

        bucket_name = app.config.get('FIREBASE_STORAGE_BUCKET')
        if not bucket_name:
            raise ValueError("FIREBASE_STORAGE_BUCKET 설정이 .env 또는 설정 파일에 필요합니다.")

        self.bucket = storage.bucket(bucket_name)
        logging.info("StorageService: Firebase Storage 서비스가 성공적으로 초기화되었습니다.")

    def generate_upload_url(self, user_id: str, upload_type: str, filename: str, content_type: str) -> dict:
        """
        클라이언트가 서버를 거치지 않고 Firebase Storage에 직접 파일을 업로드(PUT)할 수 있는 URL을 생성합니다.

        :param user_id: JWT에서 추출한 현재 로그인된 사용자의 고유 ID
        :param upload_type: 업로드 목적 ("proof_image", "profile_image")
        :param filename: 업로드할 원본 파일명 (확장자 파악에 사용)
        :param content_type: 업로드할 파일의 MIME 타입 (예: "image/jpeg")
        :return: 업로드 URL과 게시물에 저장할 파일 경로가 담긴 딕셔너리
        """
        if not self.bucket:
            raise RuntimeError("StorageService가 초기화되지 않았습니다. init_app을 먼저 호출해주세요.")

        folder_template = self.PATH_MAP.get(upload_type)
        if not folder_template:
            raise ValueError(f"'{upload_type}'은(는) 유효한 업로드 타입이 아닙니다.")

        extension = filename.split('.')[-1] if '.' in filename else 'jpg'
        destination_blob_name = f"{folder_template.format(user_id=user_id)}/{uuid.uuid4()}.{extension}"

        blob = self.bucket.blob(destination_blob_name)

        # 15분 동안 유효한 업로드 전용 URL
        upload_url = blob.generate_signed_url(
            version="v4",
            expiration=timedelta(minutes=15),
            method="PUT",
            content_type=content_type
        )

        return {
            "upload_url": upload_url,
            "file_path": destination_blob_name
        }

    def generate_download_url(self, file_path: str) -> str:
        """
        저장된 파일을 볼 수 있는 서명 URL을 반환합니다.
        피드를 그릴 때마다 같은 이미지를 요청하므로 캐시 유효 시간 동안은 같은 URL을 재사용합니다.
        """
        if not self.bucket:
            raise RuntimeError("StorageService가 초기화되지 않았습니다. init_app을 먼저 호출해주세요.")

        def _sign() -> str:
            blob = self.bucket.blob(file_path)
            if not blob.exists():
                raise FileNotFoundError(f"파일을 찾을 수 없습니다: {file_path}")
            return blob.generate_signed_url(version="v4", expiration=timedelta(hours=2), method="GET")

        if self.url_cache is None:
            return _sign()
        return self.url_cache.get_or_load(file_path, _sign)
