# app/api/adoptions/services.py
import logging
from firebase_admin import firestore
from typing import Optional, List

from app.core.exceptions import DuplicateRequestError, NotFoundError, InvalidTransitionError, ListingNotFoundError
from app.models.adoption_request import AdoptionRequest, AdoptionRequestStatus, request_slot_id
from app.utils.datetime_utils import DateTimeUtils

# Firestore batch 한 번에 쓸 수 있는 최대 작업 수
BATCH_LIMIT = 500

class AdoptionRequestService:
    """
    입양 신청 저장소 역할을 하는 서비스 클래스.

    - 신청 문서의 ID는 request_slot_id(listing_id, requester_id)로 고정됩니다.
      (게시글, 신청자) 쌍마다 문서가 하나뿐이므로 중복 검사와 저장을
      하나의 트랜잭션 안에서 처리할 수 있습니다.
    - 거절된 신청은 재신청 시 'adoption_request_history' 로 옮겨 보관합니다.
    """
    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.requests_ref = self.db.collection('adoption_requests')
        self.history_ref = self.db.collection('adoption_request_history')
        self.listings_ref = self.db.collection('listings')

    def find_active(self, listing_id: str, requester_id: str) -> Optional[AdoptionRequest]:
        """(게시글, 신청자) 쌍의 현재 신청을 조회합니다. 취소된 신청은 삭제되므로 조회되지 않습니다."""
        doc = self.requests_ref.document(request_slot_id(listing_id, requester_id)).get()
        if not doc.exists:
            return None
        return AdoptionRequest.from_dict(doc.to_dict())

    def get(self, request_id: str) -> AdoptionRequest:
        docs = list(self.requests_ref.where('request_id', '==', request_id).limit(1).stream())
        if not docs:
            raise NotFoundError("입양 신청을 찾을 수 없습니다.")
        return AdoptionRequest.from_dict(docs[0].to_dict())

    def insert_if_absent(self, request: AdoptionRequest) -> AdoptionRequest:
        """
        진행 중(pending/approved)인 신청이 없을 때만 새 신청을 저장합니다.
        동시에 들어온 신청은 트랜잭션 충돌로 재시도되어 하나만 성공하고
        나머지는 DuplicateRequestError 를 받습니다.
        게시글 문서도 같은 트랜잭션에서 읽으므로 이미 삭제된 게시글에는 신청이 저장되지 않습니다.
        """
        listing_ref = self.listings_ref.document(request.listing_id)
        slot_ref = self.requests_ref.document(request_slot_id(request.listing_id, request.requester_id))
        transaction = self.db.transaction()

        @firestore.transactional
        def _insert_in_transaction(transaction):
            if not listing_ref.get(transaction=transaction).exists:
                raise ListingNotFoundError()
            snapshot = slot_ref.get(transaction=transaction)
            if snapshot.exists:
                existing = AdoptionRequest.from_dict(snapshot.to_dict())
                if existing.is_blocking:
                    raise DuplicateRequestError()
                # 거절된 신청은 이력으로 옮기고 자리를 비웁니다.
                transaction.set(self.history_ref.document(existing.request_id), DateTimeUtils.for_firestore(existing.to_dict()))
            transaction.set(slot_ref, DateTimeUtils.for_firestore(request.to_dict()))

        _insert_in_transaction(transaction)
        return request

    def delete(self, listing_id: str, requester_id: str) -> AdoptionRequest:
        """신청을 삭제하고 삭제된 신청을 반환합니다. 없으면 NotFoundError."""
        slot_ref = self.requests_ref.document(request_slot_id(listing_id, requester_id))
        transaction = self.db.transaction()

        @firestore.transactional
        def _delete_in_transaction(transaction):
            snapshot = slot_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError()
            transaction.delete(slot_ref)
            return AdoptionRequest.from_dict(snapshot.to_dict())

        return _delete_in_transaction(transaction)

    def delete_all_for(self, listing_id: str) -> int:
        """
        게시글을 참조하는 모든 신청(이력 포함)을 삭제하고 삭제된 진행 신청 수를 반환합니다.
        중간에 실패해도 다시 호출하면 남은 문서부터 이어서 삭제합니다.
        """
        deleted = 0
        for collection_ref in (self.requests_ref, self.history_ref):
            query = collection_ref.where('listing_id', '==', listing_id)
            while True:
                docs = list(query.limit(BATCH_LIMIT).stream())
                if not docs:
                    break
                batch = self.db.batch()
                for doc in docs:
                    batch.delete(doc.reference)
                batch.commit()
                if collection_ref is self.requests_ref:
                    deleted += len(docs)
        logging.info(f"입양 신청 일괄 삭제 완료 (listing_id: {listing_id}, count: {deleted})")
        return deleted

    def transition(self, request: AdoptionRequest, new_status: AdoptionRequestStatus) -> AdoptionRequest:
        """대기 중(pending)인 신청만 승인/거절 상태로 바꿀 수 있습니다."""
        slot_ref = self.requests_ref.document(request_slot_id(request.listing_id, request.requester_id))
        transaction = self.db.transaction()

        @firestore.transactional
        def _transition_in_transaction(transaction):
            snapshot = slot_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError("입양 신청을 찾을 수 없습니다.")
            current = AdoptionRequest.from_dict(snapshot.to_dict())
            if current.request_id != request.request_id:
                raise NotFoundError("입양 신청을 찾을 수 없습니다.")
            if current.status != AdoptionRequestStatus.PENDING:
                raise InvalidTransitionError()

            current.status = new_status
            current.updated_at = DateTimeUtils.now()
            transaction.update(slot_ref, {'status': new_status.value, 'updated_at': current.updated_at})
            return current

        return _transition_in_transaction(transaction)

    def list_for_listing(self, listing_id: str) -> List[AdoptionRequest]:
        """게시글에 들어온 신청을 최신순으로 조회합니다."""
        query = self.requests_ref.where('listing_id', '==', listing_id).order_by('created_at', direction=firestore.Query.DESCENDING)
        return [AdoptionRequest.from_dict(doc.to_dict()) for doc in query.stream()]

    def list_for_requester(self, requester_id: str) -> List[AdoptionRequest]:
        """사용자가 보낸 신청을 최신순으로 조회합니다."""
        query = self.requests_ref.where('requester_id', '==', requester_id).order_by('created_at', direction=firestore.Query.DESCENDING)
        return [AdoptionRequest.from_dict(doc.to_dict()) for doc in query.stream()]
