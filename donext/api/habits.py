from flask import Blueprint

from donext.guards import api_route, int_arg, respond
from donext.models import db
from donext.schemas import (
    HabitCreateSchema,
    HabitUpdateSchema,
    RoutineStepCreateSchema,
    RoutineStepUpdateSchema,
    ToggleSchema,
)
from donext.services import gamification, habits

bp = Blueprint('habits_api', __name__, url_prefix='/api')


@bp.route('/habits', methods=['GET'])
@api_route()
def list_habits(user):
    return respond(habits=habits.list_habits(db.session, user.id))


@bp.route('/habits', methods=['POST'])
@api_route(HabitCreateSchema)
def create_habit(user, payload):
    habit = habits.create_habit(db.session, user.id, payload.model_dump())
    return respond(201, habit=habit.to_dict())


@bp.route('/habits/<int:habit_id>', methods=['PUT'])
@api_route(HabitUpdateSchema)
def update_habit(user, habit_id, payload):
    habit = habits.update_habit(db.session, user.id, habit_id, payload.model_dump(exclude_unset=True))
    return respond(habit=habit.to_dict())


@bp.route('/habits/<int:habit_id>', methods=['DELETE'])
@api_route()
def delete_habit(user, habit_id):
    habits.delete_habit(db.session, user.id, habit_id)
    return respond(message="Habit deleted")


@bp.route('/habits/toggle/<int:habit_id>', methods=['POST'])
@api_route(ToggleSchema)
def toggle_habit(user, habit_id, payload):
    completed = habits.toggle_habit(db.session, user.id, habit_id, payload.date)
    return respond(completed=completed, habitId=habit_id)


@bp.route('/habits/gamification', methods=['GET'])
@api_route()
def habit_gamification(user):
    return respond(**gamification.gamification_summary(db.session, user.id))


@bp.route('/habits/leaderboard', methods=['GET'])
@api_route()
def leaderboard(user):
    limit = int_arg('limit', default=10)
    return respond(leaderboard=gamification.leaderboard(db.session, limit=limit))


# --- routine ---

@bp.route('/routine', methods=['GET'])
@api_route()
def list_routine(user):
    return respond(steps=habits.list_routine(db.session, user.id))


@bp.route('/routine', methods=['POST'])
@api_route(RoutineStepCreateSchema)
def create_step(user, payload):
    step = habits.create_step(db.session, user.id, payload.model_dump())
    return respond(201, step=step.to_dict())


@bp.route('/routine/<int:step_id>', methods=['PUT'])
@api_route(RoutineStepUpdateSchema)
def update_step(user, step_id, payload):
    step = habits.update_step(db.session, user.id, step_id, payload.model_dump(exclude_unset=True))
    return respond(step=step.to_dict())


@bp.route('/routine/<int:step_id>', methods=['DELETE'])
@api_route()
def delete_step(user, step_id):
    habits.delete_step(db.session, user.id, step_id)
    return respond(message="Routine step deleted")


@bp.route('/routine/toggle/<int:step_id>', methods=['POST'])
@api_route()
def toggle_step(user, step_id):
    completed = habits.toggle_step(db.session, user.id, step_id)
    return respond(completed=completed, stepId=step_id)
