# app/api/listings/services.py
import logging
import uuid
from firebase_admin import firestore
from typing import Optional, Dict, Any, Tuple, List

from app.core.exceptions import ListingNotFoundError
from app.models.listing import Listing, ListingStatus
from app.utils.datetime_utils import DateTimeUtils

# update 로 변경할 수 없는 필드
IMMUTABLE_FIELDS = frozenset({'listing_id', 'owner_id', 'created_at'})

class ListingService:
    """
    입양 게시글(Listing) 저장소 역할을 하는 서비스 클래스.
    삭제는 반드시 AdoptionWorkflowService.delete_listing 을 통해서만 호출되어야 합니다.
    """
    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.listings_ref = self.db.collection('listings')

    def create(self, owner_id: str, data: Dict[str, Any]) -> Listing:
        """새로운 입양 게시글을 생성하고 Firestore에 저장합니다."""
        fields = {k: v for k, v in data.items() if k not in IMMUTABLE_FIELDS}
        if isinstance(fields.get('status'), str):
            fields['status'] = ListingStatus(fields['status'])

        listing = Listing(listing_id=str(uuid.uuid4()), owner_id=owner_id, **fields)
        try:
            self.listings_ref.document(listing.listing_id).set(DateTimeUtils.for_firestore(listing.to_dict()))
        except Exception as e:
            logging.error(f"게시글 생성 실패 (owner_id: {owner_id}): {e}", exc_info=True)
            raise
        return listing

    def get(self, listing_id: str) -> Listing:
        doc = self.listings_ref.document(listing_id).get()
        if not doc.exists:
            raise ListingNotFoundError()
        return Listing.from_dict(doc.to_dict())

    def list_listings(self, limit: int, cursor: Optional[str], status: Optional[ListingStatus] = None) -> Tuple[List[Listing], Optional[str]]:
        """게시글 목록을 최신순으로 페이지네이션 조회합니다."""
        query = self.listings_ref
        if status:
            query = query.where('status', '==', status.value)
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)

        if cursor:
            cursor_doc = self.listings_ref.document(cursor).get()
            if cursor_doc.exists:
                query = query.start_after(cursor_doc)

        listings = [Listing.from_dict(doc.to_dict()) for doc in query.limit(limit).stream()]
        last_doc_id = listings[-1].listing_id if len(listings) == limit else None
        return listings, last_doc_id

    def update(self, listing_id: str, changes: Dict[str, Any]) -> Listing:
        """
        게시글 일부 필드를 수정하고 수정된 게시글을 반환합니다.
        listing_id, owner_id, created_at 은 변경할 수 없습니다.
        """
        update_data = {k: v for k, v in changes.items() if k not in IMMUTABLE_FIELDS}
        if isinstance(update_data.get('status'), ListingStatus):
            update_data['status'] = update_data['status'].value
        update_data['updated_at'] = DateTimeUtils.now()

        listing_ref = self.listings_ref.document(listing_id)
        if not listing_ref.get().exists:
            raise ListingNotFoundError()

        listing_ref.update(DateTimeUtils.for_firestore(update_data))
        return Listing.from_dict(listing_ref.get().to_dict())

    def delete(self, listing_id: str) -> None:
        """게시글 문서를 삭제합니다. 실패 시 예외가 전파됩니다."""
        self.listings_ref.document(listing_id).delete()
        logging.info(f"게시글 문서 삭제 완료 (listing_id: {listing_id})")
