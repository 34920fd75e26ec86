# conftest.py
"""
테스트 공용 픽스처.

Firestore/Storage 대신 메모리 저장소를 사용합니다. 각 저장소는 실제 서비스 클래스와
같은 메서드를 제공하며, 실패를 흉내 낼 수 있는 스위치를 갖고 있습니다.
"""
import threading
import uuid
from typing import Optional, Dict, Any, List

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from app.api.adoptions.workflow import AdoptionWorkflowService
from app.core.exceptions import (
    DuplicateRequestError, NotFoundError, ListingNotFoundError, NotificationNotFoundError,
    ForbiddenError, InvalidTransitionError,
)
from app.models.adoption_request import AdoptionRequest, AdoptionRequestStatus, request_slot_id
from app.models.listing import Listing, ListingStatus
from app.models.notification import Notification, NotificationType
from app.utils.datetime_utils import DateTimeUtils


class InMemoryListingStore:
    def __init__(self):
        self.listings: Dict[str, Listing] = {}
        self.fail_delete = False

    def create(self, owner_id: str, data: Dict[str, Any]) -> Listing:
        fields = dict(data)
        if isinstance(fields.get('status'), str):
            fields['status'] = ListingStatus(fields['status'])
        listing = Listing(listing_id=fields.pop('listing_id', None) or str(uuid.uuid4()), owner_id=owner_id, **fields)
        self.listings[listing.listing_id] = listing
        return listing

    def get(self, listing_id: str) -> Listing:
        if listing_id not in self.listings:
            raise ListingNotFoundError()
        return self.listings[listing_id]

    def list_listings(self, limit, cursor, status=None):
        items = sorted(self.listings.values(), key=lambda l: l.created_at, reverse=True)
        if status:
            items = [l for l in items if l.status == status]
        return items[:limit], None

    def update(self, listing_id: str, changes: Dict[str, Any]) -> Listing:
        listing = self.get(listing_id)
        for key, value in changes.items():
            if key in ('listing_id', 'owner_id', 'created_at'):
                continue
            setattr(listing, key, value)
        listing.updated_at = DateTimeUtils.now()
        return listing

    def delete(self, listing_id: str) -> None:
        if self.fail_delete:
            raise RuntimeError("firestore unavailable")
        self.listings.pop(listing_id, None)


class InMemoryRequestStore:
    def __init__(self, listing_store: Optional[InMemoryListingStore] = None):
        self.listing_store = listing_store
        self.requests: Dict[str, AdoptionRequest] = {}
        self.history: Dict[str, AdoptionRequest] = {}
        self.lock = threading.Lock()
        self.fail_delete_all = False

    def find_active(self, listing_id: str, requester_id: str) -> Optional[AdoptionRequest]:
        return self.requests.get(request_slot_id(listing_id, requester_id))

    def get(self, request_id: str) -> AdoptionRequest:
        for request in self.requests.values():
            if request.request_id == request_id:
                return request
        raise NotFoundError()

    def insert_if_absent(self, request: AdoptionRequest) -> AdoptionRequest:
        slot = request_slot_id(request.listing_id, request.requester_id)
        with self.lock:
            if self.listing_store is not None and request.listing_id not in self.listing_store.listings:
                raise ListingNotFoundError()
            existing = self.requests.get(slot)
            if existing is not None:
                if existing.is_blocking:
                    raise DuplicateRequestError()
                self.history[existing.request_id] = existing
            self.requests[slot] = request
        return request

    def delete(self, listing_id: str, requester_id: str) -> AdoptionRequest:
        with self.lock:
            removed = self.requests.pop(request_slot_id(listing_id, requester_id), None)
        if removed is None:
            raise NotFoundError()
        return removed

    def delete_all_for(self, listing_id: str) -> int:
        if self.fail_delete_all:
            raise RuntimeError("firestore batch failed")
        with self.lock:
            slots = [slot for slot, r in self.requests.items() if r.listing_id == listing_id]
            for slot in slots:
                del self.requests[slot]
            for request_id in [k for k, r in self.history.items() if r.listing_id == listing_id]:
                del self.history[request_id]
        return len(slots)

    def transition(self, request: AdoptionRequest, new_status: AdoptionRequestStatus) -> AdoptionRequest:
        with self.lock:
            current = self.requests.get(request_slot_id(request.listing_id, request.requester_id))
            if current is None or current.request_id != request.request_id:
                raise NotFoundError()
            if current.status != AdoptionRequestStatus.PENDING:
                raise InvalidTransitionError()
            current.status = new_status
            current.updated_at = DateTimeUtils.now()
            return current

    def list_for_listing(self, listing_id: str) -> List[AdoptionRequest]:
        return sorted((r for r in self.requests.values() if r.listing_id == listing_id),
                      key=lambda r: r.created_at, reverse=True)

    def list_for_requester(self, requester_id: str) -> List[AdoptionRequest]:
        return sorted((r for r in self.requests.values() if r.requester_id == requester_id),
                      key=lambda r: r.created_at, reverse=True)

    def referencing(self, listing_id: str) -> List[AdoptionRequest]:
        return [r for r in list(self.requests.values()) + list(self.history.values()) if r.listing_id == listing_id]


class InMemoryMediaStore:
    def __init__(self):
        self.objects = set()
        self.failing_keys = set()
        self.deleted: List[str] = []
        self.lock = threading.Lock()

    def delete(self, key: Optional[str]) -> None:
        if not key:
            return
        if key in self.failing_keys:
            raise RuntimeError(f"storage timeout for {key}")
        with self.lock:
            self.objects.discard(key)
            self.deleted.append(key)


class InMemoryNotificationSink:
    def __init__(self):
        self.notifications: List[Notification] = []
        self.fail = False

    def enqueue(self, user_id: str, n_type: NotificationType, message: str, link: str, listing_id: Optional[str] = None) -> Notification:
        if self.fail:
            raise RuntimeError("notification outbox unavailable")
        notification = Notification(notification_id=str(uuid.uuid4()), user_id=user_id, type=n_type,
                                    message=message, link=link, listing_id=listing_id)
        self.notifications.append(notification)
        return notification

    def for_user(self, user_id: str) -> List[Notification]:
        return [n for n in self.notifications if n.user_id == user_id]

    def get_notifications(self, user_id: str, unread_only: bool = False, limit: int = 20) -> List[Notification]:
        items = [n for n in reversed(self.for_user(user_id)) if not (unread_only and n.is_read)]
        return items[:limit]

    def count_unread(self, user_id: str) -> int:
        return sum(1 for n in self.for_user(user_id) if not n.is_read)

    def mark_read(self, notification_id: str, user_id: str) -> Notification:
        for n in self.notifications:
            if n.notification_id == notification_id:
                if n.user_id != user_id:
                    raise ForbiddenError()
                n.is_read = True
                return n
        raise NotificationNotFoundError()

    def mark_all_read(self, user_id: str) -> int:
        unread = [n for n in self.for_user(user_id) if not n.is_read]
        for n in unread:
            n.is_read = True
        return len(unread)


@pytest.fixture
def listing_store():
    return InMemoryListingStore()

@pytest.fixture
def request_store(listing_store):
    return InMemoryRequestStore(listing_store)

@pytest.fixture
def media_store():
    return InMemoryMediaStore()

@pytest.fixture
def notification_sink():
    return InMemoryNotificationSink()

@pytest.fixture
def workflow(listing_store, request_store, media_store, notification_sink):
    return AdoptionWorkflowService(listing_store, request_store, media_store, notification_sink, cleanup_workers=4)

@pytest.fixture
def app(listing_store, request_store, media_store, notification_sink):
    app = create_app('testing', services={
        'listings': listing_store,
        'adoption_requests': request_store,
        'storage': media_store,
        'notifications': notification_sink,
    })
    return app

@pytest.fixture
def client(app):
    return app.test_client()

@pytest.fixture
def auth_headers(app):
    """사용자 ID 로 Authorization 헤더를 만들어주는 함수를 반환합니다."""
    def _headers(user_id: str) -> Dict[str, str]:
        with app.app_context():
            token = create_access_token(identity=user_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers
