# app/models/listing.py
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
import logging

from app.utils.datetime_utils import DateTimeUtils


class ListingStatus(Enum):
    """입양 게시글(Listing)의 상태"""
    AVAILABLE = "available"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ADOPTED = "adopted"


@dataclass
class Listing:
    """
    Firestore 'listings' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    - 이미지는 공개 URL로 저장하며, Storage 키는 URL의 마지막 경로 조각에서 파생됩니다.
    - 접종 증명서 URL은 별도 필드가 아니라 health_info 텍스트 안에 마커로 포함됩니다.
    """
    listing_id: str
    owner_id: str
    name: str
    status: ListingStatus = ListingStatus.AVAILABLE
    main_image_url: Optional[str] = None
    additional_photo_urls: List[str] = field(default_factory=list)
    health_info: Optional[str] = None
    breed: Optional[str] = None
    age: Optional[str] = None
    size: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    vaccination_status: bool = False
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)

    def to_dict(self) -> Dict[str, Any]:
        """Firestore 저장용 딕셔너리로 변환합니다. (Enum -> 문자열)"""
        data = asdict(self)
        data['status'] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Listing":
        """Firestore 문서 딕셔너리로부터 Listing 인스턴스를 생성합니다."""
        processed_data = DateTimeUtils.from_firestore(data.copy())

        status_str = processed_data.get('status')
        if isinstance(status_str, str):
            try:
                processed_data['status'] = ListingStatus(status_str.lower())
            except ValueError:
                logging.warning(f"Invalid ListingStatus value '{status_str}' for listing {processed_data.get('listing_id')}. Defaulting to available.")
                processed_data['status'] = ListingStatus.AVAILABLE

        if processed_data.get('additional_photo_urls') is None:
            processed_data['additional_photo_urls'] = []

        known_fields = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in processed_data.items() if k in known_fields})
