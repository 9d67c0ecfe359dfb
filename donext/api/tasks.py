from flask import Blueprint

from donext.errors import ValidationError
from donext.guards import api_route, int_arg, json_body, respond
from donext.models import db
from donext.schemas import (
    DateRangeQuery,
    DependencySchema,
    PrioritizeSchema,
    SubtaskSchema,
    TaskCreateSchema,
    TaskListQuery,
    TaskUpdateSchema,
    parse,
)
from donext.services import prioritization, tasks

bp = Blueprint('tasks_api', __name__, url_prefix='/api/tasks')


@bp.route('', methods=['GET'])
@api_route(TaskListQuery, source='query')
def list_tasks(user, payload):
    rows = tasks.list_tasks(db.session, user.id, **payload.model_dump())
    return respond(tasks=[t.to_dict() for t in rows])


@bp.route('', methods=['POST'])
@api_route(TaskCreateSchema)
def create_task(user, payload):
    task = tasks.create_task(db.session, user.id, payload.model_dump())
    return respond(201, task=task.to_dict())


@bp.route('/<int:task_id>', methods=['GET'])
@api_route()
def get_task(user, task_id):
    return respond(task=tasks.get_owned_task(db.session, user.id, task_id).to_dict())


@bp.route('/<int:task_id>', methods=['PUT'])
@api_route(TaskUpdateSchema)
def update_task(user, task_id, payload):
    task = tasks.update_task(db.session, user.id, task_id, payload.model_dump(exclude_unset=True))
    return respond(task=task.to_dict())


@bp.route('/<int:task_id>', methods=['DELETE'])
@api_route()
def delete_task(user, task_id):
    tasks.delete_task(db.session, user.id, task_id)
    return respond(message="Task deleted")


@bp.route('/toggle/<int:task_id>', methods=['POST'])
@api_route()
def toggle_task(user, task_id):
    task = tasks.toggle_task(db.session, user.id, task_id)
    return respond(task=task.to_dict(), completed=task.completed)


@bp.route('/by-date', methods=['GET'])
@api_route(DateRangeQuery, source='query')
def tasks_by_date(user, payload):
    rows = tasks.tasks_by_date(db.session, user.id, payload.start, payload.end)
    return respond(tasks=[t.to_dict() for t in rows])


# --- relationships ---

@bp.route('/relationships', methods=['GET'])
@api_route()
def get_relationships(user):
    task_id = int_arg('taskId', required=True)
    return respond(**tasks.task_relationships(db.session, user.id, task_id))


@bp.route('/relationships', methods=['POST'])
@api_route()
def create_relationship(user):
    body = json_body()
    kind = body.get('type')

    if kind == 'dependency':
        data = parse(DependencySchema, body)
        link = tasks.add_dependency(db.session, user.id, data.dependency_id, data.dependent_id)
        return respond(201, dependency=link.to_dict())

    if kind == 'subtask':
        data = parse(SubtaskSchema, body)
        subtask = tasks.create_task(db.session, user.id, data.model_dump())
        return respond(201, subtask=subtask.to_dict())

    raise ValidationError("type must be dependency or subtask")


@bp.route('/relationships', methods=['DELETE'])
@api_route()
def delete_relationship(user):
    dependency_id = int_arg('dependencyId')
    subtask_id = int_arg('subtaskId')
    if dependency_id is not None:
        tasks.remove_dependency(db.session, user.id, dependency_id)
        return respond(message="Dependency removed")
    if subtask_id is not None:
        tasks.detach_subtask(db.session, user.id, subtask_id)
        return respond(message="Subtask detached")
    raise ValidationError("dependencyId or subtaskId is required")


# --- prioritization ---

@bp.route('/prioritize', methods=['GET'])
@api_route()
def prioritized(user):
    return respond(tasks=prioritization.prioritized_tasks(db.session, user.id))


@bp.route('/prioritize', methods=['POST'])
@api_route(PrioritizeSchema)
def prioritize(user, payload):
    if payload.batch_update is not None:
        return respond(**prioritization.batch_update_priorities(db.session, user.id, payload.batch_update))
    task = prioritization.prioritize_task(db.session, user.id, payload.task_id, payload.action)
    return respond(task=task)


@bp.route('/eisenhower', methods=['GET'])
@api_route()
def eisenhower(user):
    return respond(matrix=prioritization.eisenhower_matrix(db.session, user.id))
