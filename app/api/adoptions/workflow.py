# app/api/adoptions/workflow.py
"""
입양 게시글, 입양 신청, 미디어 파일, 알림 사이의 일관성을 관리하는 워크플로우 서비스.

- 사용자 식별자(requester_id, owner_id, viewer_id)는 항상 인자로 전달받습니다.
- 알림 전송은 본 작업과 분리된 best-effort 단계입니다.
- 게시글 삭제는 신청 삭제(필수) -> 미디어 삭제(best-effort, 병렬) -> 게시글 문서 삭제 순서로 진행됩니다.
"""
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple

from app.api.listings.health_info import (
    extract_vaccination_proof_url, strip_vaccination_proof, attach_vaccination_proof, media_key_from_url,
)
from app.core.exceptions import (
    AdoptionValidationError, ForbiddenError, CascadeFailureError, DeleteFailedError,
    PartialCleanupWarning, DeletionResult,
)
from app.models.adoption_request import AdoptionRequest, AdoptionRequestStatus
from app.models.listing import Listing, ListingStatus
from app.models.notification import NotificationType
from app.services.storage_service import StorageService


class RequestStatus(Enum):
    """조회하는 사용자와 게시글 사이의 신청 상태"""
    NONE = "none"          # 신청 가능
    PENDING = "pending"    # 신청 대기 중
    APPROVED = "approved"  # 승인됨, 보호자에게 연락 가능
    REJECTED = "rejected"  # 거절됨, 다시 신청 가능


STATUS_BY_REQUEST = {
    AdoptionRequestStatus.PENDING: RequestStatus.PENDING,
    AdoptionRequestStatus.APPROVED: RequestStatus.APPROVED,
    AdoptionRequestStatus.REJECTED: RequestStatus.REJECTED,
}


class AdoptionWorkflowService:
    """
    입양 워크플로우의 핵심 서비스.
    네 개의 저장소(게시글, 신청, 미디어, 알림)를 주입받아 조율하며 Flask 에 의존하지 않습니다.
    """

    def __init__(self, listing_store, request_store, media_store, notification_sink,
                 link_template: str = "/post/{listing_id}", cleanup_workers: int = 4):
        self.listings = listing_store
        self.requests = request_store
        self.media = media_store
        self.notifications = notification_sink
        self.link_template = link_template
        self.cleanup_workers = max(1, cleanup_workers)

    # ------------------------------------------------------------------
    # 알림
    # ------------------------------------------------------------------
    def _notify(self, user_id: str, n_type: NotificationType, message: str, listing_id: str) -> bool:
        """알림을 best-effort 로 저장합니다. 실패해도 예외를 전파하지 않습니다."""
        try:
            self.notifications.enqueue(
                user_id, n_type, message,
                self.link_template.format(listing_id=listing_id),
                listing_id=listing_id
            )
            return True
        except Exception as e:
            logging.error(f"{n_type.value} 알림 생성 실패 (user_id: {user_id}, listing_id: {listing_id}): {e}", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # 입양 신청
    # ------------------------------------------------------------------
    def submit_adoption_request(self, listing_id: str, requester_id: str, owner_id: str, listing_name: str) -> AdoptionRequest:
        """
        입양 신청을 생성하고 보호자에게 알림을 보냅니다.
        - 자기 게시글에는 신청할 수 없습니다.
        - 진행 중인 신청이 있으면 저장소가 DuplicateRequestError 를 발생시킵니다.
        """
        if not listing_id or not requester_id or not owner_id:
            raise AdoptionValidationError("게시글, 신청자, 보호자 정보가 모두 필요합니다.")
        if requester_id == owner_id:
            raise AdoptionValidationError("자신의 게시글에는 입양 신청을 할 수 없습니다.")

        request = AdoptionRequest(
            request_id=str(uuid.uuid4()),
            listing_id=listing_id,
            requester_id=requester_id,
            owner_id=owner_id,
        )
        created = self.requests.insert_if_absent(request)
        logging.info(f"입양 신청 생성 완료 (listing_id: {listing_id}, requester_id: {requester_id})")

        self._notify(owner_id, NotificationType.ADOPTION_REQUEST,
                     f"{listing_name or '반려동물'}에 대한 새로운 입양 신청이 도착했습니다.", listing_id)
        return created

    def cancel_adoption_request(self, listing_id: str, requester_id: str) -> AdoptionRequest:
        """
        신청자가 자신의 신청을 취소합니다. 신청 문서는 삭제되며,
        반환값은 상태가 cancelled 로 표시된 삭제된 신청입니다.
        """
        if not listing_id or not requester_id:
            raise AdoptionValidationError("게시글과 신청자 정보가 모두 필요합니다.")

        removed = self.requests.delete(listing_id, requester_id)
        removed.status = AdoptionRequestStatus.CANCELLED
        logging.info(f"입양 신청 취소 완료 (listing_id: {listing_id}, requester_id: {requester_id})")

        self._notify(removed.owner_id, NotificationType.ADOPTION_CANCELLED,
                     "회원님의 반려동물에 대한 입양 신청이 취소되었습니다.", listing_id)
        return removed

    def decide_adoption_request(self, request_id: str, owner_id: str, approve: bool) -> AdoptionRequest:
        """
        보호자가 대기 중인 신청을 승인하거나 거절합니다.
        승인 시 게시글 상태를 adopted 로 변경하고, 신청자에게 결과 알림을 보냅니다.
        """
        request = self.requests.get(request_id)
        if request.owner_id != owner_id:
            raise ForbiddenError()

        new_status = AdoptionRequestStatus.APPROVED if approve else AdoptionRequestStatus.REJECTED
        decided = self.requests.transition(request, new_status)

        if approve:
            listing = self.listings.update(decided.listing_id, {'status': ListingStatus.ADOPTED})
            self._notify(decided.requester_id, NotificationType.ADOPTION_APPROVED,
                         f"{listing.name or '반려동물'}에 대한 입양 신청이 승인되었습니다!", decided.listing_id)
        else:
            self._notify(decided.requester_id, NotificationType.ADOPTION_REJECTED,
                         "회원님의 입양 신청이 거절되었습니다.", decided.listing_id)
        return decided

    def get_request_status(self, listing_id: str, viewer_id: Optional[str]) -> RequestStatus:
        """조회 시점마다 저장소에서 신청 상태를 계산합니다. 캐시하지 않습니다."""
        if not viewer_id:
            return RequestStatus.NONE
        request = self.requests.find_active(listing_id, viewer_id)
        if request is None:
            return RequestStatus.NONE
        return STATUS_BY_REQUEST.get(request.status, RequestStatus.NONE)

    def list_requests_for_listing(self, listing_id: str, owner_id: str) -> List[AdoptionRequest]:
        listing = self.listings.get(listing_id)
        self._ensure_owner(listing, owner_id)
        return self.requests.list_for_listing(listing_id)

    # ------------------------------------------------------------------
    # 게시글
    # ------------------------------------------------------------------
    @staticmethod
    def _ensure_owner(listing: Listing, user_id: Optional[str]) -> None:
        if listing.owner_id != user_id:
            raise ForbiddenError()

    @staticmethod
    def _media_keys(listing: Listing) -> List[Tuple[str, str]]:
        """
        게시글이 참조하는 미디어 키를 (단계, 키) 목록으로 반환합니다.
        빈 키와 게시글 작성자가 업로드하지 않은 키는 제외합니다.
        """
        candidates = [("main_image", media_key_from_url(listing.main_image_url))]
        candidates += [("additional_photo", media_key_from_url(url)) for url in listing.additional_photo_urls or []]
        candidates.append(("vaccination_proof", media_key_from_url(extract_vaccination_proof_url(listing.health_info))))

        keys = []
        for stage, key in candidates:
            if not key:
                continue
            if not StorageService.is_owned_by(key, listing.owner_id):
                logging.warning(f"작성자 소유가 아닌 미디어 키는 삭제하지 않습니다 (listing_id: {listing.listing_id}, stage: {stage}, key: {key})")
                continue
            keys.append((stage, key))
        return keys

    def _delete_media(self, listing_id: str, targets: List[Tuple[str, str]]) -> Tuple[List[str], List[PartialCleanupWarning]]:
        """
        미디어 파일을 병렬로 best-effort 삭제합니다.
        각 파일은 독립적으로 처리되며 실패는 경고로 수집됩니다.
        """
        seen = set()
        unique_targets = []
        for stage, key in targets:
            if key not in seen:
                seen.add(key)
                unique_targets.append((stage, key))
        if not unique_targets:
            return [], []

        def _delete_one(target):
            stage, key = target
            try:
                self.media.delete(key)
                return None
            except Exception as e:
                logging.warning(f"미디어 삭제 실패 (listing_id: {listing_id}, stage: {stage}, key: {key}): {e}")
                return PartialCleanupWarning(stage=stage, key=key, reason=str(e))

        workers = min(self.cleanup_workers, len(unique_targets))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(_delete_one, unique_targets))

        deleted = [key for (_, key), warning in zip(unique_targets, outcomes) if warning is None]
        warnings = [warning for warning in outcomes if warning is not None]
        return deleted, warnings

    def delete_listing(self, listing: Listing, requested_by: Optional[str] = None) -> DeletionResult:
        """
        게시글을 삭제합니다.

        1. 게시글을 참조하는 모든 입양 신청 삭제 (필수, 실패 시 CascadeFailureError)
        2~4. 대표 이미지, 추가 사진, 접종 증명서 파일 삭제 (best-effort, 병렬)
        5. 게시글 문서 삭제 (실패 시 DeleteFailedError)

        :param listing: 삭제할 게시글
        :param requested_by: 요청한 사용자 ID. 전달되면 게시글 소유자인지 확인합니다.
        """
        if requested_by is not None:
            self._ensure_owner(listing, requested_by)

        try:
            deleted_count = self.requests.delete_all_for(listing.listing_id)
        except Exception as e:
            logging.error(f"입양 신청 일괄 삭제 실패로 게시글 삭제 중단 (listing_id: {listing.listing_id}): {e}", exc_info=True)
            raise CascadeFailureError() from e

        deleted_keys, warnings = self._delete_media(listing.listing_id, self._media_keys(listing))

        try:
            self.listings.delete(listing.listing_id)
        except Exception as e:
            logging.error(
                f"ORPHANED_LISTING 게시글 문서 삭제 실패 (listing_id: {listing.listing_id}). "
                f"입양 신청은 모두 삭제된 상태입니다: {e}", exc_info=True
            )
            raise DeleteFailedError(warnings=warnings) from e

        # 1단계 이후 들어온 신청이 남지 않도록 한 번 더 정리합니다.
        try:
            late_count = self.requests.delete_all_for(listing.listing_id)
            if late_count:
                logging.warning(f"게시글 삭제 중 생성된 입양 신청 {late_count}건 추가 삭제 (listing_id: {listing.listing_id})")
                deleted_count += late_count
        except Exception as e:
            logging.error(f"게시글 삭제 후 입양 신청 재정리 실패 (listing_id: {listing.listing_id}): {e}", exc_info=True)

        if warnings:
            logging.warning(f"게시글 삭제 완료, 미디어 {len(warnings)}건 정리 실패 (listing_id: {listing.listing_id})")
        else:
            logging.info(f"게시글 삭제 완료 (listing_id: {listing.listing_id}, requests: {deleted_count})")

        return DeletionResult(
            listing_id=listing.listing_id,
            deleted_request_count=deleted_count,
            deleted_media_keys=deleted_keys,
            warnings=warnings,
        )

    def update_listing(self, listing_id: str, owner_id: str, changes: Dict[str, Any]) -> Tuple[Listing, List[PartialCleanupWarning]]:
        """
        게시글을 수정하고, 수정으로 더 이상 참조되지 않는 미디어 파일을 best-effort 로 삭제합니다.
        수정된 게시글과 미디어 정리 경고를 함께 반환합니다.
        """
        current = self.listings.get(listing_id)
        self._ensure_owner(current, owner_id)

        changes = dict(changes)
        if 'vaccination_proof_url' in changes:
            proof_url = changes.pop('vaccination_proof_url')
            base = changes.get('health_info', current.health_info)
            changes['health_info'] = attach_vaccination_proof(base, proof_url) if proof_url else strip_vaccination_proof(base)
        if isinstance(changes.get('status'), str):
            changes['status'] = ListingStatus(changes['status'])

        previous_keys = self._media_keys(current)
        updated = self.listings.update(listing_id, changes)

        still_used = {key for _, key in self._media_keys(updated)}
        stale = [(stage, key) for stage, key in previous_keys if key not in still_used]
        _, warnings = self._delete_media(listing_id, stale)
        return updated, warnings
