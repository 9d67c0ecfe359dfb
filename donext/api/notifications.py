from flask import Blueprint, request

from donext.errors import ValidationError
from donext.guards import api_route, respond
from donext.models import db
from donext.schemas import NotificationCreateSchema, NotificationReadSchema
from donext.services import notifications, tasks

bp = Blueprint('notifications_api', __name__, url_prefix='/api')


@bp.route('/notifications', methods=['GET'])
@api_route()
def list_notifications(user):
    rows = notifications.list_notifications(db.session, user.id)
    return respond(notifications=[n.to_dict() for n in rows], unread=sum(1 for n in rows if not n.read))


@bp.route('/notifications', methods=['POST'])
@api_route(NotificationCreateSchema)
def create_notification(user, payload):
    notification = notifications.create_notification(
        db.session, user.id, payload.title, payload.message, payload.type
    )
    return respond(201, notification=notification.to_dict())


@bp.route('/notifications', methods=['PUT'])
@api_route(NotificationReadSchema)
def mark_read(user, payload):
    updated = notifications.mark_read(db.session, user.id, payload.id)
    return respond(updated=updated)


@bp.route('/search', methods=['GET'])
@api_route()
def search(user):
    term = request.args.get('q', '').strip()
    if not term:
        raise ValidationError("q is required")
    return respond(results=tasks.search(db.session, user.id, term))
