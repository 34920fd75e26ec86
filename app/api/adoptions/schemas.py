# app/api/adoptions/schemas.py
from marshmallow import Schema, fields, validate

from app.models.adoption_request import AdoptionRequestStatus


class AdoptionDecisionSchema(Schema):
    """PATCH /api/adoption-requests/{request_id} 요청 본문. 보호자의 승인/거절 결정."""
    decision = fields.Str(required=True, validate=validate.OneOf(
        ["approved", "rejected"], error="decision 은 'approved' 또는 'rejected' 여야 합니다."
    ))


class AdoptionRequestResponseSchema(Schema):
    """입양 신청 응답 형식"""
    request_id = fields.Str()
    listing_id = fields.Str()
    requester_id = fields.Str()
    owner_id = fields.Str()
    status = fields.Enum(AdoptionRequestStatus, by_value=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime(allow_none=True)


class RequestStatusResponseSchema(Schema):
    """조회하는 사용자 기준의 신청 상태 응답"""
    listing_id = fields.Str()
    status = fields.Str()
    can_submit = fields.Bool()
    message = fields.Str()
