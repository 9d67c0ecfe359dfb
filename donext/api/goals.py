from typing import get_args

from flask import Blueprint, request

from donext.errors import ValidationError
from donext.guards import api_route, int_arg, json_body, respond
from donext.models import db
from donext.schemas import (
    GoalCreateSchema,
    GoalProgressSchema,
    GoalStatus,
    MilestoneCreateSchema,
    MilestoneUpdateSchema,
    parse,
)
from donext.services import goals

bp = Blueprint('goals_api', __name__, url_prefix='/api/goals')

GOAL_STATUSES = get_args(GoalStatus)


@bp.route('', methods=['GET'])
@api_route()
def get_goals(user):
    kind = request.args.get('type', 'goals')

    if kind == 'goals':
        status = request.args.get('status')
        if status and status not in GOAL_STATUSES:
            raise ValidationError("Invalid status")
        rows = goals.list_goals(db.session, user.id, status)
        return respond(goals=[g.to_dict() for g in rows])
    if kind == 'analytics':
        return respond(analytics=goals.goal_analytics(db.session, user.id))
    if kind == 'overdue':
        return respond(goals=[g.to_dict() for g in goals.overdue_goals(db.session, user.id)])
    if kind == 'upcoming':
        days = int_arg('days', default=7)
        return respond(goals=[g.to_dict() for g in goals.upcoming_goals(db.session, user.id, days)])

    raise ValidationError("Invalid type parameter")


@bp.route('', methods=['POST'])
@api_route()
def post_goals(user):
    body = json_body()
    action = body.get('action')

    if action == 'create':
        goal = goals.create_goal(db.session, user.id, parse(GoalCreateSchema, body))
        return respond(201, goal=goal.to_dict())

    if action == 'updateProgress':
        data = parse(GoalProgressSchema, body)
        goal = goals.update_progress(db.session, user.id, data.goal_id, data.current_value, data.status)
        return respond(goal=goal.to_dict())

    if action == 'createMilestone':
        milestone = goals.create_milestone(db.session, user.id, parse(MilestoneCreateSchema, body))
        return respond(201, milestone=milestone.to_dict())

    if action == 'updateMilestone':
        data = parse(MilestoneUpdateSchema, body)
        milestone = goals.update_milestone(db.session, user.id, data.milestone_id, data.current_value, data.completed)
        return respond(milestone=milestone.to_dict(), goal=milestone.goal.to_dict())

    raise ValidationError("Invalid action")
