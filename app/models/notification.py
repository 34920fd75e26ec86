# app/models/notification.py
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional

from app.utils.datetime_utils import DateTimeUtils


class NotificationType(Enum):
    """알림 유형을 정의하는 Enum 클래스"""
    ADOPTION_REQUEST = "adoption_request"
    ADOPTION_CANCELLED = "adoption_cancelled"
    ADOPTION_APPROVED = "adoption_approved"
    ADOPTION_REJECTED = "adoption_rejected"


@dataclass
class Notification:
    """
    Firestore 'notifications' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    생성 이후에는 is_read 값만 변경됩니다.
    """
    notification_id: str
    user_id: str           # 알림을 받는 사용자 ID
    type: NotificationType
    message: str
    link: str              # 클라이언트가 이동할 경로 (예: /post/42)
    listing_id: Optional[str] = None
    is_read: bool = False
    created_at: datetime = field(default_factory=DateTimeUtils.now)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Notification":
        processed_data = DateTimeUtils.from_firestore(data.copy())
        processed_data['type'] = NotificationType(processed_data['type'])
        known_fields = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in processed_data.items() if k in known_fields})
