# app/api/notifications/schemas.py
from marshmallow import Schema, fields

from app.models.notification import NotificationType


class NotificationResponseSchema(Schema):
    """알림 응답 형식"""
    notification_id = fields.Str()
    user_id = fields.Str()
    type = fields.Enum(NotificationType, by_value=True)
    message = fields.Str()
    link = fields.Str()
    listing_id = fields.Str(allow_none=True)
    is_read = fields.Bool()
    created_at = fields.DateTime()
