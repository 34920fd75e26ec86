# app/api/listings/schemas.py
from marshmallow import Schema, fields, validate

from app.api.listings.health_info import extract_vaccination_proof_url, strip_vaccination_proof
from app.models.listing import ListingStatus


class ListingCreateSchema(Schema):
    """POST /api/listings 요청 본문의 유효성을 검사합니다."""
    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    main_image_url = fields.URL(allow_none=True)
    additional_photo_urls = fields.List(fields.URL(), load_default=list)
    health_info = fields.Str(allow_none=True, validate=validate.Length(max=2000))
    vaccination_proof_url = fields.URL(schemes={'https'}, allow_none=True)
    vaccination_status = fields.Bool(load_default=False)
    breed = fields.Str(allow_none=True)
    age = fields.Str(allow_none=True)
    size = fields.Str(allow_none=True)
    location = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True, validate=validate.Length(max=2000))


class ListingUpdateSchema(Schema):
    """PATCH /api/listings/{listing_id} 요청 본문의 유효성을 검사합니다. 모든 필드는 선택입니다."""
    name = fields.Str(validate=validate.Length(min=1, max=100))
    status = fields.Str(validate=validate.OneOf([e.value for e in ListingStatus]))
    main_image_url = fields.URL(allow_none=True)
    additional_photo_urls = fields.List(fields.URL())
    health_info = fields.Str(allow_none=True, validate=validate.Length(max=2000))
    vaccination_proof_url = fields.URL(schemes={'https'}, allow_none=True)
    vaccination_status = fields.Bool()
    breed = fields.Str(allow_none=True)
    age = fields.Str(allow_none=True)
    size = fields.Str(allow_none=True)
    location = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True, validate=validate.Length(max=2000))


class ListingResponseSchema(Schema):
    """게시글 응답 형식. 접종 증명서 URL은 health_info 에서 파생됩니다."""
    listing_id = fields.Str(dump_only=True)
    owner_id = fields.Str()
    name = fields.Str()
    status = fields.Enum(ListingStatus, by_value=True)
    main_image_url = fields.Str(allow_none=True)
    additional_photo_urls = fields.List(fields.Str())
    health_info = fields.Method("get_health_info_text")
    vaccination_proof_url = fields.Method("get_vaccination_proof_url")
    vaccination_status = fields.Bool()
    breed = fields.Str(allow_none=True)
    age = fields.Str(allow_none=True)
    size = fields.Str(allow_none=True)
    location = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

    # 상세 조회 시 라우트에서 채워주는 응답 전용 필드
    request_status = fields.Str(dump_only=True)

    def get_health_info_text(self, listing):
        return strip_vaccination_proof(listing.health_info)

    def get_vaccination_proof_url(self, listing):
        return extract_vaccination_proof_url(listing.health_info)
