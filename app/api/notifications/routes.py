# app/api/notifications/routes.py
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.api.notifications.schemas import NotificationResponseSchema

notifications_bp = Blueprint('notifications_bp', __name__)


@notifications_bp.route('', methods=['GET'])
@jwt_required()
def get_notifications():
    """내 알림 목록과 읽지 않은 알림 수를 조회합니다."""
    notification_service = current_app.services['notifications']
    user_id = get_jwt_identity()
    limit = request.args.get('limit', 20, type=int)
    unread_only = request.args.get('unread_only', 'false').lower() == 'true'

    notifications = notification_service.get_notifications(user_id, unread_only=unread_only, limit=limit)
    return jsonify({
        "notifications": NotificationResponseSchema(many=True).dump(notifications),
        "unread_count": notification_service.count_unread(user_id)
    }), 200


@notifications_bp.route('/<string:notification_id>/read', methods=['POST'])
@jwt_required()
def mark_notification_read(notification_id: str):
    notification_service = current_app.services['notifications']
    user_id = get_jwt_identity()

    notification = notification_service.mark_read(notification_id, user_id)
    return jsonify(NotificationResponseSchema().dump(notification)), 200


@notifications_bp.route('/read-all', methods=['POST'])
@jwt_required()
def mark_all_notifications_read():
    notification_service = current_app.services['notifications']
    user_id = get_jwt_identity()

    updated = notification_service.mark_all_read(user_id)
    return jsonify({"updated": updated}), 200
