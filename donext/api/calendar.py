from flask import Blueprint, request

from donext.errors import ValidationError
from donext.guards import api_route, int_arg, json_body, respond
from donext.models import db
from donext.schemas import (
    CalendarConnectSchema,
    CalendarEventSchema,
    CalendarEventUpdateSchema,
    CalendarToggleSchema,
    DateRangeQuery,
    parse,
)
from donext.services import calendar_sync
from donext.services.calendar_providers import PROVIDER_INFO

bp = Blueprint('calendar_api', __name__, url_prefix='/api/calendar')


@bp.route('', methods=['GET'])
@api_route()
def get_calendar(user):
    kind = request.args.get('type', 'connections')

    if kind == 'connections':
        rows = calendar_sync.list_connections(db.session, user.id)
        return respond(connections=[c.to_dict() for c in rows])
    if kind == 'events':
        start = end = None
        if request.args.get('startDate') or request.args.get('endDate'):
            span = parse(DateRangeQuery, {'start': request.args.get('startDate'), 'end': request.args.get('endDate')})
            start, end = span.start, span.end
        rows = calendar_sync.list_events(db.session, user.id, start, end)
        return respond(events=[e.to_dict() for e in rows])
    if kind == 'providers':
        return respond(providers=PROVIDER_INFO)
    if kind == 'sync':
        connection = calendar_sync.get_owned_connection(db.session, user.id, int_arg('connectionId', required=True))
        return respond(sync=calendar_sync.sync_connection(db.session, connection))

    raise ValidationError("Invalid type parameter")


@bp.route('', methods=['POST'])
@api_route()
def post_calendar(user):
    body = json_body()
    action = body.get('action')

    if action == 'connect':
        data = parse(CalendarConnectSchema, body)
        connection = calendar_sync.connect(db.session, user.id, data.provider, data.auth_code)
        return respond(201, connection=connection.to_dict())

    if action == 'createEvent':
        event = calendar_sync.create_event(db.session, user.id, parse(CalendarEventSchema, body))
        return respond(201, event=event.to_dict())

    if action == 'updateEvent':
        event = calendar_sync.update_event(db.session, user.id, parse(CalendarEventUpdateSchema, body))
        return respond(event=event.to_dict())

    if action == 'syncAll':
        return respond(results=calendar_sync.sync_all(db.session, user.id))

    raise ValidationError("Invalid action")


@bp.route('', methods=['DELETE'])
@api_route()
def delete_calendar_item(user):
    connection_id = int_arg('connectionId')
    event_id = int_arg('eventId')
    if connection_id is not None:
        calendar_sync.delete_connection(db.session, user.id, connection_id)
        return respond(message="Calendar disconnected")
    if event_id is not None:
        calendar_sync.delete_event(db.session, user.id, event_id)
        return respond(message="Event deleted")
    raise ValidationError("connectionId or eventId is required")


@bp.route('', methods=['PATCH'])
@api_route(CalendarToggleSchema)
def toggle_sync(user, payload):
    connection = calendar_sync.set_sync_enabled(db.session, user.id, payload.connection_id, payload.enabled)
    return respond(connection=connection.to_dict())
