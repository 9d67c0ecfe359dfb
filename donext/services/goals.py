"""SMART goals and their milestones."""

import logging
from collections import Counter
from datetime import timedelta

from donext.errors import NotFoundError, ValidationError
from donext.models import Goal, GoalMilestone, utcnow
from donext.states import GOAL_STATUS

logger = logging.getLogger(__name__)

DEFAULT_RELEVANCE = "Personal development goal"


def _progress(current, target):
    if not target:
        return 0
    return min(100.0, round(current / target * 100, 2))


def get_owned_goal(session, user_id, goal_id):
    goal = session.query(Goal).filter(Goal.id == goal_id, Goal.user_id == user_id).first()
    if not goal:
        raise NotFoundError("Goal not found")
    return goal


def validate_smart(data, now=None):
    """Return a list of SMART problems with a new goal; empty when valid."""
    now = now or utcnow()
    errors = []
    if not data.title:
        errors.append("Title is required")
    if data.measurable and (data.target_value is None or not data.unit):
        errors.append("Measurable goals need a target value and unit")
    if data.target_value is not None and data.target_value <= 0:
        errors.append("Target value must be positive")
    if data.time_bound is None:
        errors.append("Deadline is required")
    elif data.time_bound <= now:
        errors.append("Deadline must be in the future")
    return errors


def create_goal(session, user_id, data):
    errors = validate_smart(data)
    if errors:
        raise ValidationError("Invalid SMART goal", details=[{'field': 'goal', 'message': e} for e in errors])

    goal = Goal(
        user_id=user_id,
        title=data.title,
        description=data.description,
        specific=data.specific or data.title,
        measurable=data.measurable,
        achievable=data.achievable,
        relevant=data.relevant or DEFAULT_RELEVANCE,
        deadline=data.time_bound,
        target_value=data.target_value,
        current_value=data.current_value,
        unit=data.unit,
        category=data.category,
        priority=data.priority,
        progress=_progress(data.current_value, data.target_value),
        status='Active',
    )
    session.add(goal)
    session.commit()
    logger.info("Goal %s created for user %s", goal.id, user_id)
    return goal


def _set_status(goal, status):
    GOAL_STATUS.check(goal.status, status)
    if status == 'Completed' and goal.status != 'Completed':
        goal.completed_at = utcnow()
    elif status != 'Completed':
        goal.completed_at = None
    goal.status = status


def _auto_complete(goal):
    if goal.progress >= 100 and goal.status == 'Active':
        _set_status(goal, 'Completed')


def update_progress(session, user_id, goal_id, current_value=None, status=None):
    goal = get_owned_goal(session, user_id, goal_id)
    if status is not None:
        _set_status(goal, status)
    if current_value is not None:
        goal.current_value = current_value
        goal.progress = _progress(current_value, goal.target_value)
        _auto_complete(goal)
    session.commit()
    return goal


def create_milestone(session, user_id, data):
    goal = get_owned_goal(session, user_id, data.goal_id)
    milestone = GoalMilestone(
        goal_id=goal.id,
        title=data.title,
        description=data.description,
        target_value=data.target_value,
        current_value=data.current_value,
        deadline=data.deadline,
    )
    if milestone.current_value >= milestone.target_value:
        milestone.completed = True
        milestone.completed_at = utcnow()
    session.add(milestone)
    session.flush()
    _recompute_from_milestones(goal)
    session.commit()
    return milestone


def update_milestone(session, user_id, milestone_id, current_value=None, completed=None):
    milestone = session.query(GoalMilestone).join(Goal).filter(
        GoalMilestone.id == milestone_id, Goal.user_id == user_id
    ).first()
    if not milestone:
        raise NotFoundError("Milestone not found")

    if current_value is not None:
        milestone.current_value = current_value
    if completed is not None:
        milestone.completed = completed
    elif milestone.current_value >= milestone.target_value:
        milestone.completed = True

    if milestone.completed and not milestone.completed_at:
        milestone.completed_at = utcnow()
    elif not milestone.completed:
        milestone.completed_at = None

    _recompute_from_milestones(milestone.goal)
    session.commit()
    return milestone


def _recompute_from_milestones(goal):
    milestones = goal.milestones
    if not milestones:
        return
    done = sum(1 for m in milestones if m.completed)
    goal.progress = round(done / len(milestones) * 100, 2)
    _auto_complete(goal)


def list_goals(session, user_id, status=None):
    query = session.query(Goal).filter(Goal.user_id == user_id)
    if status:
        query = query.filter(Goal.status == status)
    return query.order_by(Goal.created_at.desc(), Goal.id.desc()).all()


def overdue_goals(session, user_id, now=None):
    now = now or utcnow()
    return session.query(Goal).filter(
        Goal.user_id == user_id,
        Goal.status == 'Active',
        Goal.deadline < now,
    ).order_by(Goal.deadline).all()


def upcoming_goals(session, user_id, days=7, now=None):
    now = now or utcnow()
    return session.query(Goal).filter(
        Goal.user_id == user_id,
        Goal.status == 'Active',
        Goal.deadline >= now,
        Goal.deadline <= now + timedelta(days=days),
    ).order_by(Goal.deadline).all()


def goal_analytics(session, user_id):
    goals = list_goals(session, user_id)
    statuses = Counter(g.status for g in goals)
    milestones = [m for g in goals for m in g.milestones]
    completed_milestones = sum(1 for m in milestones if m.completed)
    now = utcnow()
    total = len(goals)

    return {
        'totalGoals': total,
        'activeGoals': statuses.get('Active', 0),
        'completedGoals': statuses.get('Completed', 0),
        'archivedGoals': statuses.get('Archived', 0),
        'averageProgress': round(sum(g.progress for g in goals) / total, 1) if total else 0,
        'totalMilestones': len(milestones),
        'completedMilestones': completed_milestones,
        'milestoneCompletionRate': round(completed_milestones / len(milestones) * 100, 1) if milestones else 0,
        'categories': dict(Counter(g.category or 'Uncategorized' for g in goals)),
        'priorityDistribution': dict(Counter(g.priority for g in goals)),
        'overdueGoals': sum(1 for g in goals if g.status == 'Active' and g.deadline < now),
        'completionRate': round(statuses.get('Completed', 0) / total * 100, 1) if total else 0,
    }
