from flask import Blueprint, request

from donext.errors import ValidationError
from donext.guards import api_route, int_arg, json_body, respond
from donext.models import db
from donext.schemas import (
    CheckInSchema,
    RespondRequestSchema,
    SendRequestSchema,
    UpdatePartnershipSchema,
    parse,
)
from donext.services import accountability

bp = Blueprint('accountability_api', __name__, url_prefix='/api/accountability')


@bp.route('', methods=['GET'])
@api_route()
def get_accountability(user):
    kind = request.args.get('type', 'partnerships')

    if kind == 'partnerships':
        rows = accountability.active_partnerships(db.session, user.id)
        return respond(partnerships=[p.to_dict() for p in rows])
    if kind == 'requests':
        return respond(**accountability.requests_for(db.session, user.id))
    if kind == 'analytics':
        return respond(analytics=accountability.partnership_analytics(db.session, user.id))
    if kind == 'partnerProgress':
        partner_id = int_arg('partnerId', required=True)
        return respond(progress=accountability.partner_progress(db.session, user.id, partner_id))
    if kind == 'potentialPartners':
        return respond(partners=accountability.potential_partners(db.session, user.id))

    raise ValidationError("Invalid type parameter")


@bp.route('', methods=['POST'])
@api_route()
def post_accountability(user):
    body = json_body()
    action = body.get('action')

    if action == 'sendRequest':
        data = parse(SendRequestSchema, body)
        request_row = accountability.send_request(db.session, user.id, data.recipient_email, data.message)
        return respond(201, request=request_row.to_dict())

    if action == 'respondRequest':
        data = parse(RespondRequestSchema, body)
        request_row = accountability.respond_to_request(db.session, user.id, data.request_id, data.accept)
        return respond(request=request_row.to_dict())

    if action == 'updatePartnership':
        partnership = accountability.update_partnership(db.session, user.id, parse(UpdatePartnershipSchema, body))
        return respond(partnership=partnership.to_dict())

    if action == 'recordCheckIn':
        data = parse(CheckInSchema, body)
        partnership = accountability.record_check_in(db.session, user.id, data.partnership_id)
        return respond(partnership=partnership.to_dict())

    raise ValidationError("Invalid action")


@bp.route('', methods=['DELETE'])
@api_route()
def end_partnership(user):
    accountability.end_partnership(db.session, user.id, int_arg('partnershipId', required=True))
    return respond(message="Partnership ended")
