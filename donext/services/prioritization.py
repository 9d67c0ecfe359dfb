"""Smart task prioritization.

Every task gets five factor scores on a 0-100 scale (deadline urgency,
importance, effort, completion likelihood and the caller's recent
efficiency). The weighted sum is the smart priority; urgency and
importance together pick an Eisenhower quadrant and a recommended action.
"""

import logging
from datetime import timedelta

from donext.errors import ValidationError
from donext.models import PriorityChange, Task, utcnow
from donext.services.tasks import get_owned_task

logger = logging.getLogger(__name__)

WEIGHTS = {
    'deadline_urgency': 0.3,
    'importance': 0.25,
    'effort': 0.15,
    'completion_likelihood': 0.2,
    'user_pattern': 0.1,
}

IMPORTANT_CATEGORIES = {'Important', 'Work', 'Urgent', 'Critical'}
IMPORTANT_TYPES = {'Meeting', 'Milestone', 'Deadline'}
PRIORITY_IMPORTANCE = {'High': 60, 'Medium': 30, 'Low': 10}
PRIORITY_EFFORT = {'High': 40, 'Medium': 60, 'Low': 80}

ACTION_PRIORITY = {
    'do_now': 'High',
    'schedule': 'Medium',
    'delegate': 'Low',
    'eliminate': 'Low',
}
VALID_PRIORITIES = ('High', 'Medium', 'Low')

QUADRANTS = {
    'do_now': 'urgent_important',
    'schedule': 'not_urgent_important',
    'delegate': 'urgent_not_important',
    'eliminate': 'not_urgent_not_important',
}


def _clamp(value, low, high):
    return max(low, min(high, value))


def deadline_urgency(task, now):
    if not task.deadline:
        return 30
    days = (task.deadline - now).total_seconds() / 86400
    if days <= 0:
        return 100
    if days <= 1:
        return 90
    if days <= 3:
        return 75
    if days <= 7:
        return 50
    if days <= 14:
        return 25
    return 10


def importance(task):
    score = PRIORITY_IMPORTANCE.get(task.priority, 30)
    if task.category in IMPORTANT_CATEGORIES:
        score += 20
    if task.type in IMPORTANT_TYPES:
        score += 15
    if task.deadline:
        score += 10
    return min(100, score)


def effort(task):
    """Higher score means less effort."""
    if task.estimated_time:
        hours = task.estimated_time / 60
        if hours <= 0.5:
            return 90
        if hours <= 1:
            return 75
        if hours <= 2:
            return 60
        if hours <= 4:
            return 40
        if hours <= 8:
            return 25
        return 10
    return PRIORITY_EFFORT.get(task.priority, 50)


def _task_hour(task):
    if task.time:
        try:
            return int(task.time.split(':')[0])
        except ValueError:
            return None
    if task.date:
        return task.date.hour
    return None


def completion_likelihood(task, patterns, effort_score):
    score = 60
    score += (patterns['completion_rate'] - 50) * 0.3
    score += (effort_score - 50) * 0.2
    hour = _task_hour(task)
    if hour is not None:
        score += 10 if 9 <= hour <= 16 else -5
    return _clamp(score, 10, 90)


def user_patterns(session, user_id, now=None):
    """Completion rate and efficiency over the last 30 days."""
    now = now or utcnow()
    recent = session.query(Task).filter(
        Task.user_id == user_id,
        Task.updated_at >= now - timedelta(days=30),
    ).all()

    if recent:
        completion_rate = sum(1 for t in recent if t.completed) / len(recent) * 100
    else:
        completion_rate = 50

    timed = [t.actual_time for t in recent if t.actual_time]
    avg_time = sum(timed) / len(timed) if timed else 60
    efficiency = _clamp(100 - abs(avg_time - 60) / 2, 30, 90)

    return {
        'completion_rate': completion_rate,
        'average_time': avg_time,
        'efficiency': efficiency,
    }


def recommend_action(urgency, importance_score):
    urgent = urgency > 60
    important = importance_score > 50
    if urgent and important:
        return 'do_now'
    if important:
        return 'schedule'
    if urgent:
        return 'delegate'
    return 'eliminate'


def score_task(task, patterns, now=None):
    now = now or utcnow()
    effort_score = effort(task)
    factors = {
        'deadline_urgency': deadline_urgency(task, now),
        'importance': importance(task),
        'effort': effort_score,
        'completion_likelihood': completion_likelihood(task, patterns, effort_score),
        'user_pattern': patterns['efficiency'],
    }
    score = round(sum(factors[name] * weight for name, weight in WEIGHTS.items()))
    return {
        'taskId': task.id,
        'smartPriority': score,
        'priorityFactors': {
            'deadlineUrgency': factors['deadline_urgency'],
            'importance': factors['importance'],
            'effort': factors['effort'],
            'completionLikelihood': round(factors['completion_likelihood'], 1),
            'userPattern': round(factors['user_pattern'], 1),
        },
        'recommendedAction': recommend_action(factors['deadline_urgency'], factors['importance']),
    }


def prioritized_tasks(session, user_id):
    """Incomplete tasks ranked by smart priority; caches the score on each row."""
    now = utcnow()
    patterns = user_patterns(session, user_id, now)
    tasks = session.query(Task).filter(
        Task.user_id == user_id, Task.completed == False  # noqa: E712
    ).order_by(Task.created_at.desc(), Task.id.desc()).all()

    ranked = []
    for task in tasks:
        result = score_task(task, patterns, now)
        task.smart_priority = result['smartPriority']
        ranked.append(dict(task.to_dict(), **result))
    session.commit()

    # sort is stable, so ties keep query order
    ranked.sort(key=lambda item: item['smartPriority'], reverse=True)
    return ranked


def _record_change(session, user_id, task, new_priority, score=None, action=None, batch=False):
    session.add(PriorityChange(
        user_id=user_id,
        task_id=task.id,
        previous_priority=task.priority,
        new_priority=new_priority,
        smart_score=score,
        action=action,
        reason=f"Smart recommendation: {action}" if action else "Manual priority update",
        batch_update=batch,
    ))
    task.priority = new_priority


def prioritize_task(session, user_id, task_id, action=None):
    if action is not None and action not in ACTION_PRIORITY:
        raise ValidationError("Invalid action")

    task = get_owned_task(session, user_id, task_id)
    result = score_task(task, user_patterns(session, user_id))
    task.smart_priority = result['smartPriority']

    if action:
        _record_change(session, user_id, task, ACTION_PRIORITY[action],
                       score=result['smartPriority'], action=action)
        logger.info("Task %s set to %s via %s", task.id, task.priority, action)
    session.commit()
    return dict(task.to_dict(), **result)


def batch_update_priorities(session, user_id, items):
    """Apply each update on its own; one bad item does not undo the others."""
    results = []
    for item in items:
        if item.priority not in VALID_PRIORITIES:
            results.append({'taskId': item.task_id, 'success': False, 'error': 'Invalid priority value'})
            continue

        task = session.query(Task).filter(Task.id == item.task_id, Task.user_id == user_id).first()
        if not task:
            results.append({'taskId': item.task_id, 'success': False, 'error': 'Task not found'})
            continue

        previous = task.priority
        _record_change(session, user_id, task, item.priority, batch=True)
        session.commit()
        results.append({
            'taskId': task.id,
            'success': True,
            'previousPriority': previous,
            'newPriority': task.priority,
        })

    successful = sum(1 for r in results if r['success'])
    logger.info("Batch priority update for user %s: %d/%d applied", user_id, successful, len(items))
    return {
        'totalUpdates': len(items),
        'successfulUpdates': successful,
        'results': results,
    }


def eisenhower_matrix(session, user_id):
    ranked = prioritized_tasks(session, user_id)
    matrix = {quadrant: [] for quadrant in QUADRANTS.values()}
    for item in ranked:
        matrix[QUADRANTS[item['recommendedAction']]].append(item)
    return dict(matrix, totalTasks=len(ranked))
