# app/api/adoptions/routes.py
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from app.api.adoptions.schemas import (
    AdoptionDecisionSchema, AdoptionRequestResponseSchema, RequestStatusResponseSchema
)
from app.api.adoptions.workflow import RequestStatus

adoptions_bp = Blueprint('adoptions_bp', __name__)

STATUS_MESSAGES = {
    RequestStatus.NONE: "입양 신청을 할 수 있습니다.",
    RequestStatus.PENDING: "입양 신청이 검토 중입니다.",
    RequestStatus.APPROVED: "입양 신청이 승인되었습니다. 보호자에게 연락해보세요.",
    RequestStatus.REJECTED: "입양 신청이 거절되었습니다. 다시 신청할 수 있습니다.",
}


@adoptions_bp.route('/listings/<string:listing_id>/adoption-requests', methods=['POST'])
@jwt_required()
def submit_adoption_request(listing_id: str):
    """
    게시글에 입양 신청을 보냅니다.
    - 성공 시 보호자에게 adoption_request 알림이 생성됩니다.
    - 이미 진행 중인 신청이 있으면 409 를 반환합니다.
    """
    listing_service = current_app.services['listings']
    workflow = current_app.services['adoption_workflow']
    user_id = get_jwt_identity()

    listing = listing_service.get(listing_id)
    adoption_request = workflow.submit_adoption_request(listing.listing_id, user_id, listing.owner_id, listing.name)
    return jsonify(AdoptionRequestResponseSchema().dump(adoption_request)), 201


@adoptions_bp.route('/listings/<string:listing_id>/adoption-requests/me', methods=['DELETE'])
@jwt_required()
def cancel_adoption_request(listing_id: str):
    """본인의 입양 신청을 취소합니다."""
    workflow = current_app.services['adoption_workflow']
    user_id = get_jwt_identity()

    cancelled = workflow.cancel_adoption_request(listing_id, user_id)
    return jsonify(AdoptionRequestResponseSchema().dump(cancelled)), 200


@adoptions_bp.route('/listings/<string:listing_id>/adoption-requests/me', methods=['GET'])
@jwt_required()
def get_my_request_status(listing_id: str):
    """게시글에 대한 본인의 입양 신청 상태를 조회합니다."""
    workflow = current_app.services['adoption_workflow']
    user_id = get_jwt_identity()

    status = workflow.get_request_status(listing_id, user_id)
    return jsonify(RequestStatusResponseSchema().dump({
        "listing_id": listing_id,
        "status": status.value,
        "can_submit": status in (RequestStatus.NONE, RequestStatus.REJECTED),
        "message": STATUS_MESSAGES[status],
    })), 200


@adoptions_bp.route('/listings/<string:listing_id>/adoption-requests', methods=['GET'])
@jwt_required()
def get_listing_requests(listing_id: str):
    """게시글에 들어온 입양 신청 목록을 조회합니다. (작성자 본인만 가능)"""
    workflow = current_app.services['adoption_workflow']
    user_id = get_jwt_identity()

    requests = workflow.list_requests_for_listing(listing_id, user_id)
    return jsonify({"adoption_requests": AdoptionRequestResponseSchema(many=True).dump(requests)}), 200


@adoptions_bp.route('/adoption-requests/mine', methods=['GET'])
@jwt_required()
def get_my_requests():
    """내가 보낸 입양 신청 목록을 조회합니다."""
    request_service = current_app.services['adoption_requests']
    user_id = get_jwt_identity()

    requests = request_service.list_for_requester(user_id)
    return jsonify({"adoption_requests": AdoptionRequestResponseSchema(many=True).dump(requests)}), 200


@adoptions_bp.route('/adoption-requests/<string:request_id>', methods=['PATCH'])
@jwt_required()
def decide_adoption_request(request_id: str):
    """
    보호자가 입양 신청을 승인하거나 거절합니다.
    - 승인 시 게시글 상태가 adopted 로 변경됩니다.
    - 신청자에게 결과 알림이 생성됩니다.
    """
    workflow = current_app.services['adoption_workflow']
    user_id = get_jwt_identity()
    try:
        data = AdoptionDecisionSchema().load(request.get_json() or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    decided = workflow.decide_adoption_request(request_id, user_id, approve=data['decision'] == "approved")
    return jsonify(AdoptionRequestResponseSchema().dump(decided)), 200
