import logging

from sqlalchemy import or_

from donext.errors import ConflictError, NotFoundError, ValidationError
from donext.models import Habit, RoutineStep, Task, TaskDependency, utcnow

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {'High': 0, 'Medium': 1, 'Low': 2}


def get_owned_task(session, user_id, task_id):
    task = session.query(Task).filter(Task.id == task_id, Task.user_id == user_id).first()
    if not task:
        raise NotFoundError("Task not found")
    return task


def list_tasks(session, user_id, completed=None, priority=None, category=None):
    query = session.query(Task).filter(Task.user_id == user_id)
    if completed is not None:
        query = query.filter(Task.completed == completed)
    if priority:
        query = query.filter(Task.priority == priority)
    if category:
        query = query.filter(Task.category == category)
    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


def create_task(session, user_id, fields):
    parent_id = fields.get('parent_task_id')
    if parent_id is not None:
        get_owned_task(session, user_id, parent_id)

    task = Task(user_id=user_id, **fields)
    session.add(task)
    session.commit()
    return task


def update_task(session, user_id, task_id, changes):
    task = get_owned_task(session, user_id, task_id)
    for field, value in changes.items():
        if field == 'completed':
            _set_completed(task, value)
        else:
            setattr(task, field, value)
    session.commit()
    return task


def delete_task(session, user_id, task_id):
    task = get_owned_task(session, user_id, task_id)
    session.query(TaskDependency).filter(
        or_(TaskDependency.dependency_id == task.id, TaskDependency.dependent_id == task.id)
    ).delete(synchronize_session=False)
    session.query(Task).filter(Task.parent_task_id == task.id).update(
        {Task.parent_task_id: None}, synchronize_session=False
    )
    session.delete(task)
    session.commit()


def _set_completed(task, completed):
    task.completed = completed
    task.completed_at = utcnow() if completed else None


def toggle_task(session, user_id, task_id):
    task = get_owned_task(session, user_id, task_id)
    _set_completed(task, not task.completed)
    session.commit()
    logger.info("Task %s toggled to %s", task.id, task.completed)
    return task


def tasks_by_date(session, user_id, start, end):
    """Tasks created in the range, or completed in it; open tasks first."""
    if end < start:
        raise ValidationError("end must not be before start")

    tasks = session.query(Task).filter(
        Task.user_id == user_id,
        or_(
            Task.created_at.between(start, end),
            (Task.completed == True) & Task.completed_at.between(start, end),  # noqa: E712
        ),
    ).all()

    tasks.sort(key=lambda t: t.created_at, reverse=True)
    tasks.sort(key=lambda t: (t.completed, PRIORITY_ORDER.get(t.priority, 3)))
    return tasks


# --- relationships ------------------------------------------------------

def task_relationships(session, user_id, task_id):
    task = get_owned_task(session, user_id, task_id)
    dependencies = session.query(TaskDependency).filter_by(dependent_id=task.id).all()
    dependents = session.query(TaskDependency).filter_by(dependency_id=task.id).all()
    return {
        'task': task.to_dict(),
        'dependencies': [dict(d.to_dict(), task=d.dependency.to_dict()) for d in dependencies],
        'dependents': [dict(d.to_dict(), task=d.dependent.to_dict()) for d in dependents],
        'subtasks': [s.to_dict() for s in task.subtasks],
        'parentTask': task.parent_task.to_dict() if task.parent_task else None,
    }


def add_dependency(session, user_id, dependency_id, dependent_id):
    if dependency_id == dependent_id:
        raise ValidationError("Cannot create dependency to self")
    get_owned_task(session, user_id, dependency_id)
    get_owned_task(session, user_id, dependent_id)

    exists = session.query(TaskDependency).filter_by(
        dependency_id=dependency_id, dependent_id=dependent_id
    ).first()
    if exists:
        raise ConflictError("Dependency already exists")

    link = TaskDependency(dependency_id=dependency_id, dependent_id=dependent_id)
    session.add(link)
    session.commit()
    return link


def remove_dependency(session, user_id, link_id):
    link = session.query(TaskDependency).join(
        Task, TaskDependency.dependent_id == Task.id
    ).filter(TaskDependency.id == link_id, Task.user_id == user_id).first()
    if not link:
        raise NotFoundError("Dependency not found")
    session.delete(link)
    session.commit()


def detach_subtask(session, user_id, subtask_id):
    subtask = get_owned_task(session, user_id, subtask_id)
    if subtask.parent_task_id is None:
        raise NotFoundError("Subtask not found")
    subtask.parent_task_id = None
    session.commit()
    return subtask


# --- search -------------------------------------------------------------

def search(session, user_id, term):
    pattern = f"%{term}%"
    tasks = session.query(Task).filter(
        Task.user_id == user_id,
        or_(Task.title.ilike(pattern), Task.description.ilike(pattern)),
    ).order_by(Task.created_at.desc()).all()
    habits = session.query(Habit).filter(
        Habit.user_id == user_id,
        or_(Habit.name.ilike(pattern), Habit.category.ilike(pattern)),
    ).all()
    steps = session.query(RoutineStep).filter(
        RoutineStep.user_id == user_id,
        RoutineStep.task.ilike(pattern),
    ).order_by(RoutineStep.time).all()
    return {
        'tasks': [t.to_dict() for t in tasks],
        'habits': [h.to_dict() for h in habits],
        'routines': [s.to_dict() for s in steps],
    }
