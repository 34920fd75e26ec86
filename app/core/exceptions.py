# app/core/exceptions.py
"""
입양 워크플로우의 예외 분류.

- 필수 단계 실패는 예외로 전파되어 작업을 중단합니다.
- best-effort 단계 실패는 PartialCleanupWarning 으로 결과에 담겨 반환됩니다.
- user_message 는 최종 사용자에게 보여도 되는 문구입니다.
"""
from dataclasses import dataclass, field
from typing import List, Optional

RETRY_MESSAGE = "요청을 완료하지 못했습니다. 잠시 후 다시 시도해주세요."


class AdoptionError(Exception):
    """입양 워크플로우 예외의 기반 클래스"""
    error_code = "ADOPTION_ERROR"
    status_code = 500
    user_message = RETRY_MESSAGE

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class AdoptionValidationError(AdoptionError):
    """자기 게시글에 대한 신청, 식별자 누락 등 입력 자체가 잘못된 경우"""
    error_code = "VALIDATION_ERROR"
    status_code = 400
    user_message = "요청 값이 올바르지 않습니다."


class DuplicateRequestError(AdoptionError):
    """같은 (게시글, 신청자) 쌍에 진행 중인 신청이 이미 있는 경우"""
    error_code = "DUPLICATE_REQUEST"
    status_code = 409
    user_message = "이미 이 아이에 대한 입양 신청이 진행 중입니다."


class NotFoundError(AdoptionError):
    """취소하거나 처리할 대상이 없는 경우"""
    error_code = "REQUEST_NOT_FOUND"
    status_code = 404
    user_message = "취소할 입양 신청을 찾을 수 없습니다."


class ListingNotFoundError(NotFoundError):
    error_code = "LISTING_NOT_FOUND"
    user_message = "게시글을 찾을 수 없습니다."


class NotificationNotFoundError(NotFoundError):
    error_code = "NOTIFICATION_NOT_FOUND"
    user_message = "알림을 찾을 수 없습니다."


class ForbiddenError(AdoptionError):
    """게시글 소유자만 할 수 있는 작업을 다른 사용자가 요청한 경우"""
    error_code = "FORBIDDEN"
    status_code = 403
    user_message = "이 작업을 수행할 권한이 없습니다."


class InvalidTransitionError(AdoptionError):
    """대기 중(pending)이 아닌 신청을 승인/거절하려는 경우"""
    error_code = "INVALID_TRANSITION"
    status_code = 409
    user_message = "이미 처리된 입양 신청입니다."


class CascadeFailureError(AdoptionError):
    """게시글 삭제의 필수 단계(입양 신청 일괄 삭제)가 실패하여 삭제가 중단된 경우"""
    error_code = "CASCADE_FAILED"
    status_code = 503


class DeleteFailedError(AdoptionError):
    """
    연쇄 정리 이후 게시글 문서 삭제가 실패한 경우.
    이 시점에는 신청이 이미 모두 삭제되어 게시글만 남아 있습니다.
    """
    error_code = "DELETE_FAILED"
    status_code = 500

    def __init__(self, message: Optional[str] = None, warnings: Optional[List["PartialCleanupWarning"]] = None):
        super().__init__(message)
        self.warnings = list(warnings or [])


@dataclass(frozen=True)
class PartialCleanupWarning:
    """best-effort 미디어 삭제 실패 기록. 운영용이며 사용자에게 노출하지 않습니다."""
    stage: str      # main_image / additional_photo / vaccination_proof
    key: str
    reason: str


@dataclass
class DeletionResult:
    """게시글 삭제 성공 결과. warnings 가 비어 있지 않아도 삭제 자체는 완료된 것입니다."""
    listing_id: str
    deleted_request_count: int
    deleted_media_keys: List[str] = field(default_factory=list)
    warnings: List[PartialCleanupWarning] = field(default_factory=list)
