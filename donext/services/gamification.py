"""Habit streaks, achievements, points and levels."""

import logging
from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from donext.models import Achievement, Goal, Habit, Task, User, today, utcnow
from donext.services.habits import completion_days, current_streak, longest_streak

logger = logging.getLogger(__name__)

POINTS_PER_ACHIEVEMENT = 100
POINTS_PER_STREAK_DAY = 10
POINTS_PER_LEVEL = 500


def habit_streaks(session, user_id, as_of=None):
    day = as_of or today()
    streaks = []
    for h in session.query(Habit).filter(Habit.user_id == user_id).all():
        days = completion_days(h)
        age = max(1, (day - h.created_at.date()).days + 1) if h.created_at else 1
        streaks.append({
            'habitId': h.id,
            'habitName': h.name,
            'icon': h.icon,
            'currentStreak': current_streak(days, day),
            'longestStreak': longest_streak(days),
            'totalCompletions': len(days),
            'completionRate': round(min(100, len(days) / age * 100)),
        })
    return streaks


# --- achievements -------------------------------------------------------

def _completed_tasks(session, user_id):
    return session.query(Task).filter(Task.user_id == user_id, Task.completed == True)  # noqa: E712


def _habit_count(session, user_id):
    return session.query(Habit).filter(Habit.user_id == user_id).count()


def _goal_count(session, user_id, status=None):
    query = session.query(Goal).filter(Goal.user_id == user_id)
    if status:
        query = query.filter(Goal.status == status)
    return query.count()


def _thirty_day_streaks(streaks):
    return sum(1 for s in streaks if s['longestStreak'] >= 30)


def _week_warrior(session, user_id):
    since = utcnow() - timedelta(days=7)
    return _completed_tasks(session, user_id).filter(Task.completed_at >= since).count() >= 7


ACHIEVEMENTS = [
    ('first_task', 'First Step', 'Complete your first task', '🎯',
     lambda s, uid, streaks: _completed_tasks(s, uid).count() >= 1),
    ('task_master', 'Task Master', 'Complete 50 tasks', '🏆',
     lambda s, uid, streaks: _completed_tasks(s, uid).count() >= 50),
    ('habit_starter', 'Habit Starter', 'Create your first habit', '🌱',
     lambda s, uid, streaks: _habit_count(s, uid) >= 1),
    ('habit_hero', 'Habit Hero', 'Reach a 30-day streak on a habit', '🔥',
     lambda s, uid, streaks: _thirty_day_streaks(streaks) >= 1),
    ('goal_setter', 'Goal Setter', 'Create your first goal', '🎯',
     lambda s, uid, streaks: _goal_count(s, uid) >= 1),
    ('goal_achiever', 'Goal Achiever', 'Complete a goal', '🥇',
     lambda s, uid, streaks: _goal_count(s, uid, 'Completed') >= 1),
    ('week_warrior', 'Week Warrior', 'Complete 7 tasks in a week', '⚡',
     lambda s, uid, streaks: _week_warrior(s, uid)),
    ('consistency_king', 'Consistency King', 'Hold 30-day streaks on 3 habits', '👑',
     lambda s, uid, streaks: _thirty_day_streaks(streaks) >= 3),
]


def check_achievements(session, user_id, streaks=None):
    """Award any newly satisfied achievements; returns the new ones."""
    streaks = streaks if streaks is not None else habit_streaks(session, user_id)
    earned = {a.type for a in session.query(Achievement).filter_by(user_id=user_id)}

    awarded = []
    for kind, name, description, icon, predicate in ACHIEVEMENTS:
        if kind in earned or not predicate(session, user_id, streaks):
            continue
        achievement = Achievement(user_id=user_id, type=kind, name=name, description=description, icon=icon)
        session.add(achievement)
        try:
            session.commit()
        except IntegrityError:
            # awarded by a concurrent request
            session.rollback()
            continue
        awarded.append(achievement)
        logger.info("User %s earned %s", user_id, kind)
    return awarded


def user_stats(session, user_id, streaks=None):
    streaks = streaks if streaks is not None else habit_streaks(session, user_id)
    achievements = session.query(Achievement).filter_by(user_id=user_id).order_by(
        Achievement.earned_at.desc()
    ).all()

    points = len(achievements) * POINTS_PER_ACHIEVEMENT
    points += sum(s['currentStreak'] for s in streaks) * POINTS_PER_STREAK_DAY
    return {
        'totalPoints': points,
        'level': points // POINTS_PER_LEVEL + 1,
        'pointsToNextLevel': POINTS_PER_LEVEL - points % POINTS_PER_LEVEL,
        'activeStreaks': sum(1 for s in streaks if s['currentStreak'] > 0),
        'longestStreak': max((s['longestStreak'] for s in streaks), default=0),
        'totalAchievements': len(achievements),
        'recentAchievements': [a.to_dict() for a in achievements[:5]],
    }


def gamification_summary(session, user_id):
    streaks = habit_streaks(session, user_id)
    new_achievements = check_achievements(session, user_id, streaks)
    achievements = session.query(Achievement).filter_by(user_id=user_id).order_by(
        Achievement.earned_at.desc()
    ).all()
    return {
        'stats': user_stats(session, user_id, streaks),
        'streaks': streaks,
        'achievements': [a.to_dict() for a in achievements],
        'newAchievements': [a.to_dict() for a in new_achievements],
        'habits': {
            'total': len(streaks),
            'completedToday': sum(1 for s in streaks if s['currentStreak'] > 0),
        },
    }


def leaderboard(session, limit=10):
    board = []
    for user in session.query(User).all():
        stats = user_stats(session, user.id)
        board.append({
            'userId': user.id,
            'name': user.name,
            'totalPoints': stats['totalPoints'],
            'level': stats['level'],
        })
    board.sort(key=lambda row: row['totalPoints'], reverse=True)
    for rank, row in enumerate(board[:limit], start=1):
        row['rank'] = rank
    return board[:limit]
