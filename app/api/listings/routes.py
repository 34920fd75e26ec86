# app/api/listings/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from app.api.listings.health_info import attach_vaccination_proof
from app.api.listings.schemas import ListingCreateSchema, ListingUpdateSchema, ListingResponseSchema
from app.models.listing import ListingStatus

listings_bp = Blueprint('listings_bp', __name__)


@listings_bp.route('', methods=['POST'])
@jwt_required()
def create_listing():
    """
    새로운 입양 게시글을 작성합니다.
    - vaccination_proof_url 이 있으면 health_info 에 접종 증명서 마커로 덧붙여 저장합니다.
    """
    listing_service = current_app.services['listings']
    user_id = get_jwt_identity()
    try:
        data = ListingCreateSchema().load(request.get_json() or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    proof_url = data.pop('vaccination_proof_url', None)
    if proof_url:
        data['health_info'] = attach_vaccination_proof(data.get('health_info'), proof_url)

    listing = listing_service.create(user_id, data)
    return jsonify(ListingResponseSchema().dump(listing)), 201


@listings_bp.route('', methods=['GET'])
def get_listings():
    """게시글 목록을 최신순으로 페이지네이션 조회합니다."""
    listing_service = current_app.services['listings']
    limit = request.args.get('limit', 10, type=int)
    cursor = request.args.get('cursor', None, type=str)
    status = request.args.get('status', None, type=str)

    try:
        status_filter = ListingStatus(status) if status else None
    except ValueError:
        return jsonify({"error_code": "VALIDATION_ERROR", "message": f"알 수 없는 상태 값입니다: {status}"}), 400

    listings, next_cursor = listing_service.list_listings(limit, cursor, status_filter)
    return jsonify({
        "listings": ListingResponseSchema(many=True).dump(listings),
        "next_cursor": next_cursor
    }), 200


@listings_bp.route('/<string:listing_id>', methods=['GET'])
@jwt_required(optional=True)
def get_listing(listing_id: str):
    """
    게시글 상세 정보를 조회합니다.
    - 로그인한 사용자에게는 해당 게시글에 대한 본인의 입양 신청 상태(request_status)를 함께 반환합니다.
    """
    listing_service = current_app.services['listings']
    workflow = current_app.services['adoption_workflow']
    user_id = get_jwt_identity()

    listing = listing_service.get(listing_id)
    response = ListingResponseSchema().dump(listing)
    response['request_status'] = workflow.get_request_status(listing_id, user_id).value
    return jsonify(response), 200


@listings_bp.route('/<string:listing_id>', methods=['PATCH'])
@jwt_required()
def update_listing(listing_id: str):
    """게시글을 수정합니다. (작성자 본인만 가능)"""
    workflow = current_app.services['adoption_workflow']
    user_id = get_jwt_identity()
    try:
        changes = ListingUpdateSchema().load(request.get_json() or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    listing, warnings = workflow.update_listing(listing_id, user_id, changes)
    if warnings:
        logging.warning(f"게시글 수정 후 미디어 정리 일부 실패 (listing_id: {listing_id}, count: {len(warnings)})")
    return jsonify(ListingResponseSchema().dump(listing)), 200


@listings_bp.route('/<string:listing_id>', methods=['DELETE'])
@jwt_required()
def delete_listing(listing_id: str):
    """
    게시글을 삭제합니다. (작성자 본인만 가능)
    - 입양 신청, 이미지, 접종 증명서 파일이 함께 정리됩니다.
    - 미디어 정리 실패는 운영 로그로만 남기고 응답에는 포함하지 않습니다.
    """
    listing_service = current_app.services['listings']
    workflow = current_app.services['adoption_workflow']
    user_id = get_jwt_identity()

    listing = listing_service.get(listing_id)
    result = workflow.delete_listing(listing, requested_by=user_id)
    return jsonify({"listing_id": result.listing_id, "message": "게시글이 삭제되었습니다."}), 200
