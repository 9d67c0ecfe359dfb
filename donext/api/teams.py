from flask import Blueprint, request

from donext.errors import ValidationError
from donext.guards import api_route, int_arg, json_body, respond
from donext.models import db
from donext.schemas import (
    AddMemberSchema,
    ProjectCreateSchema,
    ProjectTaskCreateSchema,
    ProjectTaskStatusSchema,
    TeamCreateSchema,
    parse,
)
from donext.services import teams

bp = Blueprint('teams_api', __name__, url_prefix='/api/teams')


@bp.route('', methods=['GET'])
@api_route()
def get_teams(user):
    kind = request.args.get('type', 'teams')

    if kind == 'teams':
        return respond(teams=[t.to_dict() for t in teams.list_teams(db.session, user.id)])
    if kind == 'team':
        team = teams.get_team(db.session, user.id, int_arg('teamId', required=True))
        return respond(team=team.to_dict(detailed=True))
    if kind == 'analytics':
        return respond(analytics=teams.team_analytics(db.session, user.id, int_arg('teamId', required=True)))

    raise ValidationError("Invalid type parameter")


@bp.route('', methods=['POST'])
@api_route()
def post_teams(user):
    body = json_body()
    action = body.get('action')

    if action == 'createTeam':
        data = parse(TeamCreateSchema, body)
        team = teams.create_team(db.session, user.id, data.name, data.description)
        return respond(201, team=team.to_dict(detailed=True))

    if action == 'addMember':
        data = parse(AddMemberSchema, body)
        member = teams.add_member(db.session, user.id, data.team_id, data.member_email, data.role)
        return respond(201, member=member.to_dict())

    if action == 'createProject':
        project = teams.create_project(db.session, user.id, parse(ProjectCreateSchema, body))
        return respond(201, project=project.to_dict())

    if action == 'createTask':
        task = teams.create_project_task(db.session, user.id, parse(ProjectTaskCreateSchema, body))
        return respond(201, task=task.to_dict())

    if action == 'updateTaskStatus':
        data = parse(ProjectTaskStatusSchema, body)
        task = teams.update_project_task_status(db.session, user.id, data.task_id, data.status)
        return respond(task=task.to_dict())

    raise ValidationError("Invalid action")


@bp.route('', methods=['DELETE'])
@api_route()
def remove_member(user):
    team_id = int_arg('teamId', required=True)
    member_id = int_arg('memberId', required=True)
    teams.remove_member(db.session, user.id, team_id, member_id)
    return respond(message="Member removed")
