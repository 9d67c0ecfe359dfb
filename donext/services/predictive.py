"""Forecasts, trend analysis and completion probabilities.

All numbers come from the caller's own history: weekly buckets for
forecasts, daily buckets for trend and anomaly detection.
"""

import math
from datetime import timedelta

from donext.models import Goal, Habit, HabitCompletion, Task, today, utcnow
from donext.services.habits import completion_days, current_streak

SMOOTHING_ALPHA = 0.3
MOVING_AVERAGE_WINDOW = 4
HISTORY_WEEKS = 13
PERIOD_DAYS = {'week': 7, 'month': 30, 'quarter': 90}


# --- statistics helpers -------------------------------------------------

def linear_trend(data):
    """Least-squares slope of ``data`` against its index."""
    n = len(data)
    if n < 2:
        return 0.0
    sum_x = n * (n - 1) / 2
    sum_y = sum(data)
    sum_xy = sum(i * y for i, y in enumerate(data))
    sum_xx = sum(i * i for i in range(n))
    denominator = n * sum_xx - sum_x * sum_x
    return (n * sum_xy - sum_x * sum_y) / denominator if denominator else 0.0


def exponential_smoothing(data, alpha=SMOOTHING_ALPHA):
    if not data:
        return 0.0
    smoothed = data[0]
    for value in data[1:]:
        smoothed = alpha * value + (1 - alpha) * smoothed
    return smoothed


def moving_average(data, window=MOVING_AVERAGE_WINDOW):
    if not data:
        return 0.0
    recent = data[-window:]
    return sum(recent) / len(recent)


def standard_deviation(data):
    if not data:
        return 10.0
    mean = sum(data) / len(data)
    return math.sqrt(sum((x - mean) ** 2 for x in data) / len(data))


def confidence_band(value, data):
    spread = 2 * standard_deviation(data)
    return {
        'lower': round(max(0, min(100, value - spread)), 1),
        'upper': round(max(0, min(100, value + spread)), 1),
    }


def _clamp(value, low=0.0, high=100.0):
    return max(low, min(high, value))


# --- history ------------------------------------------------------------

def _weekly_history(session, user_id, as_of):
    """Per-week task completions, habit completions and a 0-100 productivity score."""
    habit_count = session.query(Habit).filter_by(user_id=user_id).count()
    first_week = as_of - timedelta(days=HISTORY_WEEKS * 7 - 1)
    since = utcnow() - timedelta(days=HISTORY_WEEKS * 7)

    tasks = session.query(Task).filter(Task.user_id == user_id, Task.created_at >= since).all()
    completions = session.query(HabitCompletion).join(Habit).filter(
        Habit.user_id == user_id, HabitCompletion.date >= first_week
    ).all()

    task_counts, habit_counts, scores = [], [], []
    for week in range(HISTORY_WEEKS):
        start = first_week + timedelta(days=week * 7)
        end = start + timedelta(days=7)
        created = [t for t in tasks if start <= t.created_at.date() < end]
        done = sum(1 for t in tasks if t.completed_at and start <= t.completed_at.date() < end)
        habit_done = sum(1 for c in completions if start <= c.date < end)

        task_rate = sum(1 for t in created if t.completed) / len(created) if created else 0
        habit_rate = habit_done / (habit_count * 7) if habit_count else 0
        task_counts.append(done)
        habit_counts.append(habit_done)
        scores.append(round(100 * (0.5 * task_rate + 0.5 * min(1, habit_rate)), 1))

    return {
        'taskCompletions': task_counts,
        'habitCompletions': habit_counts,
        'productivityScores': scores,
    }


def _goal_projection(session, user_id, days, now):
    goals = session.query(Goal).filter_by(user_id=user_id, status='Active').all()
    if not goals:
        return 0.0, 0.0
    projected = []
    for g in goals:
        elapsed = max(1, (now - (g.start_date or g.created_at or now)).days)
        velocity = (g.progress or 0) / elapsed
        projected.append(min(100, (g.progress or 0) + velocity * days))
    current = sum(g.progress or 0 for g in goals) / len(goals)
    return current, sum(projected) / len(projected)


def performance_forecast(session, user_id, days=30, as_of=None):
    day = as_of or today()
    history = _weekly_history(session, user_id, day)
    weeks_ahead = days / 7

    task_trend = linear_trend(history['taskCompletions'])
    habit_trend = linear_trend(history['habitCompletions'])
    last_tasks = history['taskCompletions'][-1]

    forecasts = {
        'taskCompletion': round(max(0, last_tasks + task_trend * weeks_ahead), 1),
        'habitCompletion': round(max(0, exponential_smoothing(history['habitCompletions'])), 1),
        'productivityScore': round(_clamp(moving_average(history['productivityScores'])), 1),
    }
    current_goal, projected_goal = _goal_projection(session, user_id, days, utcnow())
    forecasts['goalProgress'] = round(projected_goal, 1)

    return {
        'forecastPeriod': days,
        'generatedAt': utcnow().isoformat(),
        'forecasts': forecasts,
        'confidence': {
            'taskCompletion': confidence_band(forecasts['taskCompletion'], history['taskCompletions']),
            'habitCompletion': confidence_band(forecasts['habitCompletion'], history['habitCompletions']),
            'productivityScore': confidence_band(forecasts['productivityScore'], history['productivityScores']),
            'goalProgress': confidence_band(forecasts['goalProgress'], []),
        },
        'historicalPatterns': {
            'taskCompletionTrend': round(task_trend, 3),
            'habitCompletionTrend': round(habit_trend, 3),
            'goalProgress': {'currentAverage': round(current_goal, 1)},
            'weeklyData': history,
        },
    }


# --- trends -------------------------------------------------------------

def _daily_metrics(session, user_id, days, as_of):
    start = as_of - timedelta(days=days - 1)
    habit_count = session.query(Habit).filter_by(user_id=user_id).count()
    tasks = session.query(Task).filter(
        Task.user_id == user_id, Task.created_at >= utcnow() - timedelta(days=days)
    ).all()
    completions = session.query(HabitCompletion).join(Habit).filter(
        Habit.user_id == user_id, HabitCompletion.date >= start
    ).all()

    metrics = []
    for i in range(days):
        d = start + timedelta(days=i)
        created = [t for t in tasks if t.created_at.date() == d]
        task_rate = sum(1 for t in created if t.completed) / len(created) if created else 0
        habit_rate = min(1, sum(1 for c in completions if c.date == d) / habit_count) if habit_count else 0
        metrics.append({
            'date': d.isoformat(),
            'taskCompletionRate': round(task_rate, 3),
            'habitCompletionRate': round(habit_rate, 3),
            'productivityScore': round(100 * (0.5 * task_rate + 0.5 * habit_rate), 1),
        })
    return metrics


def detect_anomalies(metrics):
    scores = [m['productivityScore'] for m in metrics]
    if not scores:
        return []
    mean = sum(scores) / len(scores)
    std = standard_deviation(scores)
    if std == 0:
        return []

    anomalies = []
    for m in metrics:
        z = abs(m['productivityScore'] - mean) / std
        if z > 2:
            anomalies.append({
                'date': m['date'],
                'type': 'peak' if m['productivityScore'] > mean else 'dip',
                'severity': 'high' if z > 3 else 'medium',
                'value': m['productivityScore'],
            })
    return anomalies


def performance_insights(trends, anomalies):
    insights = []
    if trends['productivity'] > 0.1:
        insights.append("Your productivity is trending upward - keep up the momentum!")
    elif trends['productivity'] < -0.1:
        insights.append("Your productivity is declining - consider taking a break or adjusting your routine.")
    else:
        insights.append("Your productivity is stable - maintain your current approach.")

    peaks = sum(1 for a in anomalies if a['type'] == 'peak')
    if peaks:
        insights.append(f"You had {peaks} peak performance day(s) - analyze what made them successful.")

    if trends['habitCompletion'] > 0.05:
        insights.append("Your habit consistency is improving - great progress!")
    return insights


def performance_trends(session, user_id, period='month', as_of=None):
    days = PERIOD_DAYS.get(period, 30)
    metrics = _daily_metrics(session, user_id, days, as_of or today())
    trends = {
        'taskCompletion': round(linear_trend([m['taskCompletionRate'] for m in metrics]), 4),
        'habitCompletion': round(linear_trend([m['habitCompletionRate'] for m in metrics]), 4),
        'productivity': round(linear_trend([m['productivityScore'] for m in metrics]), 4),
    }
    anomalies = detect_anomalies(metrics)
    return {
        'period': period if period in PERIOD_DAYS else 'month',
        'analysisDate': utcnow().isoformat(),
        'dailyMetrics': metrics,
        'trends': trends,
        'anomalies': anomalies,
        'insights': performance_insights(trends, anomalies),
    }


# --- probabilities ------------------------------------------------------

def habit_adherence(days, as_of):
    if not days:
        return 0.4
    month_rate = sum(1 for d in days if d > as_of - timedelta(days=30)) / 30
    week_rate = sum(1 for d in days if d > as_of - timedelta(days=7)) / 7
    streak_bonus = min(0.3, current_streak(days, as_of) * 0.01)
    return _clamp(month_rate * 0.6 + week_rate * 0.4 + streak_bonus, 0, 1)


def habit_predictions(session, user_id, as_of=None):
    day = as_of or today()
    predictions = []
    for h in session.query(Habit).filter_by(user_id=user_id).all():
        days = completion_days(h)
        probability = round(habit_adherence(days, day), 2)
        predictions.append({
            'habitId': h.id,
            'habitName': h.name,
            'adherenceProbability': probability,
            'currentStreak': current_streak(days, day),
            'riskLevel': 'high' if probability < 0.4 else 'medium' if probability < 0.6 else 'low',
        })
    return {
        'predictions': predictions,
        'highRiskHabits': [p for p in predictions if p['adherenceProbability'] < 0.6],
        'averageAdherence': round(
            sum(p['adherenceProbability'] for p in predictions) / len(predictions), 2
        ) if predictions else 0,
    }


def task_completion_probability(task, base_rate, now):
    probability = base_rate
    if task.priority == 'High':
        probability += 0.1
    elif task.priority == 'Low':
        probability -= 0.1
    if task.deadline:
        days_until = (task.deadline - now).total_seconds() / 86400
        if days_until < 3:
            probability += 0.15
        elif days_until > 14:
            probability -= 0.1
    return round(_clamp(probability, 0, 1), 2)


def predict_task_completion(session, user_id, task_ids):
    now = utcnow()
    history = session.query(Task).filter(
        Task.user_id == user_id, Task.created_at >= now - timedelta(days=60)
    ).all()
    base_rate = sum(1 for t in history if t.completed) / len(history) if history else 0.6

    tasks = session.query(Task).filter(Task.user_id == user_id, Task.id.in_(task_ids)).all()
    found = {t.id: t for t in tasks}
    predictions = []
    for task_id in task_ids:
        task = found.get(task_id)
        if task is None:
            predictions.append({'taskId': task_id, 'error': 'Task not found'})
            continue
        predictions.append({
            'taskId': task.id,
            'title': task.title,
            'completionProbability': task_completion_probability(task, base_rate, now),
            'baseRate': round(base_rate, 2),
        })
    return predictions
