# app/services/notification_service.py
import logging
import uuid
from firebase_admin import firestore
from typing import Optional, List

from app.core.exceptions import NotificationNotFoundError, ForbiddenError
from app.models.notification import Notification, NotificationType
from app.utils.datetime_utils import DateTimeUtils

# Firestore batch 한 번에 쓸 수 있는 최대 작업 수
BATCH_LIMIT = 500

class NotificationService:
    """
    알림 저장소(append-only outbox) 역할을 하는 서비스 클래스.
    - 알림은 입양 신청 생성/취소/승인/거절의 부수 효과로만 생성됩니다.
    - 생성 이후에는 is_read 값만 변경됩니다.
    - enqueue 의 실패는 호출자에게 전파되며, best-effort 여부는 호출자가 결정합니다.
    """
    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.notifications_ref = self.db.collection('notifications')

    def enqueue(self, user_id: str, n_type: NotificationType, message: str, link: str, listing_id: Optional[str] = None) -> Notification:
        """
        새 알림을 저장합니다.

        :param user_id: 알림을 받을 사용자 ID
        :param n_type: 알림 유형 (NotificationType Enum)
        :param message: 사용자에게 표시될 문구
        :param link: 알림을 눌렀을 때 이동할 경로
        :param listing_id: 관련 게시글 ID
        """
        notification = Notification(
            notification_id=str(uuid.uuid4()),
            user_id=user_id,
            type=n_type,
            message=message,
            link=link,
            listing_id=listing_id
        )
        self.notifications_ref.document(notification.notification_id).set(
            DateTimeUtils.for_firestore(notification.to_dict())
        )
        logging.info(f"{n_type.value} 알림 생성 완료: -> {user_id}")
        return notification

    def get_notifications(self, user_id: str, unread_only: bool = False, limit: int = 20) -> List[Notification]:
        """사용자의 알림을 최신순으로 조회합니다."""
        query = self.notifications_ref.where('user_id', '==', user_id)
        if unread_only:
            query = query.where('is_read', '==', False)
        docs = query.order_by('created_at', direction=firestore.Query.DESCENDING).limit(limit).stream()
        return [Notification.from_dict(doc.to_dict()) for doc in docs]

    def count_unread(self, user_id: str) -> int:
        query = self.notifications_ref.where('user_id', '==', user_id).where('is_read', '==', False)
        count_result = query.count().get()
        return count_result[0][0].value

    def mark_read(self, notification_id: str, user_id: str) -> Notification:
        """알림 하나를 읽음 처리합니다. 본인의 알림만 변경할 수 있습니다."""
        notification_ref = self.notifications_ref.document(notification_id)
        doc = notification_ref.get()
        if not doc.exists:
            raise NotificationNotFoundError()

        notification = Notification.from_dict(doc.to_dict())
        if notification.user_id != user_id:
            raise ForbiddenError()

        if not notification.is_read:
            notification_ref.update({'is_read': True})
            notification.is_read = True
        return notification

    def mark_all_read(self, user_id: str) -> int:
        """사용자의 읽지 않은 알림을 모두 읽음 처리하고 변경된 개수를 반환합니다."""
        query = self.notifications_ref.where('user_id', '==', user_id).where('is_read', '==', False)
        updated = 0
        while True:
            docs = list(query.limit(BATCH_LIMIT).stream())
            if not docs:
                break
            batch = self.db.batch()
            for doc in docs:
                batch.update(doc.reference, {'is_read': True})
            batch.commit()
            updated += len(docs)
        return updated
