# app/models/adoption_request.py
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
import logging
from urllib.parse import quote

from app.utils.datetime_utils import DateTimeUtils


class AdoptionRequestStatus(Enum):
    """입양 신청의 상태. CANCELLED는 문서 삭제로 표현되므로 저장소에 남지 않습니다."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


# 재신청을 막는 상태. 거절(rejected)된 신청은 남아 있지만 재신청을 막지 않습니다.
BLOCKING_STATUSES = frozenset({AdoptionRequestStatus.PENDING, AdoptionRequestStatus.APPROVED})


def _encode_slot_part(value: str) -> str:
    # '/' 는 Firestore 경로 구분자, '_' 는 두 ID 사이의 구분자이므로 둘 다 인코딩합니다.
    return quote(str(value), safe='').replace('_', '%5F')


def request_slot_id(listing_id: str, requester_id: str) -> str:
    """
    (listing, requester) 쌍마다 하나뿐인 신청 문서 ID.
    각 ID를 퍼센트 인코딩한 뒤 '_' 로 잇기 때문에 서로 다른 쌍이 같은 ID가 되지 않습니다.
    """
    return f"{_encode_slot_part(listing_id)}_{_encode_slot_part(requester_id)}"


@dataclass
class AdoptionRequest:
    """
    Firestore 'adoption_requests' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    문서 ID는 request_slot_id(listing_id, requester_id)로 고정되며,
    이 고정 ID가 쌍마다 하나의 신청만 존재하도록 보장합니다.
    """
    request_id: str
    listing_id: str
    requester_id: str
    owner_id: str
    status: AdoptionRequestStatus = AdoptionRequestStatus.PENDING
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: Optional[datetime] = None

    @property
    def is_blocking(self) -> bool:
        return self.status in BLOCKING_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdoptionRequest":
        processed_data = DateTimeUtils.from_firestore(data.copy())

        status_str = processed_data.get('status')
        if isinstance(status_str, str):
            try:
                processed_data['status'] = AdoptionRequestStatus(status_str)
            except ValueError:
                logging.warning(f"Invalid AdoptionRequestStatus value '{status_str}' for request {processed_data.get('request_id')}. Defaulting to pending.")
                processed_data['status'] = AdoptionRequestStatus.PENDING

        known_fields = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in processed_data.items() if k in known_fields})
