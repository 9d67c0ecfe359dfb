import calendar
from collections import Counter
from datetime import MAXYEAR, MINYEAR, date, datetime, timedelta

from sqlalchemy import func

from donext.errors import ValidationError
from donext.models import Habit, HabitCompletion, Task, today
from donext.services.habits import current_streak, longest_streak

CATEGORIES = ['Study', 'Work', 'Personal', 'Health', 'Important']


def _day_start(d):
    return datetime(d.year, d.month, d.day)


def _user_completions(session, user_id, start=None, end=None):
    query = session.query(HabitCompletion).join(Habit).filter(Habit.user_id == user_id)
    if start:
        query = query.filter(HabitCompletion.date >= start)
    if end:
        query = query.filter(HabitCompletion.date <= end)
    return query


def overview(session, user_id, as_of=None):
    day = as_of or today()

    # --- 1. 90-day activity heatmap ---
    heatmap_start = day - timedelta(days=89)
    intensity = Counter()
    recent_tasks = session.query(Task).filter(
        Task.user_id == user_id, Task.updated_at >= _day_start(heatmap_start)
    ).all()
    for t in recent_tasks:
        intensity[t.updated_at.date().isoformat()] += 1
    for c in _user_completions(session, user_id, heatmap_start, day):
        intensity[c.date.isoformat()] += 1

    # --- 2. Category completion ---
    tasks = session.query(Task).filter(Task.user_id == user_id).all()
    category_analysis = []
    for category in CATEGORIES:
        in_category = [t for t in tasks if t.category == category]
        done = sum(1 for t in in_category if t.completed)
        category_analysis.append({
            'category': category,
            'total': len(in_category),
            'completed': done,
            'percentage': round(done / len(in_category) * 100) if in_category else 0,
        })

    # --- 3. Habit stats over 30 days ---
    window_start = day - timedelta(days=29)
    habit_stats = []
    for h in session.query(Habit).filter(Habit.user_id == user_id).all():
        days = {c.date for c in h.completions}
        in_window = sum(1 for d in days if window_start <= d <= day)
        habit_stats.append({
            'id': h.id,
            'name': h.name,
            'icon': h.icon,
            'percentage': round(in_window / 30 * 100),
            'streak': current_streak(days, day),
        })

    # --- 4. Task completion over 30 days ---
    month_tasks = [t for t in tasks if t.created_at and t.created_at >= _day_start(window_start)]
    avg_completion = round(sum(1 for t in month_tasks if t.completed) / len(month_tasks) * 100) if month_tasks else 0

    # --- 5. Seven-day trend ---
    weekly_trend = []
    for i in range(6, -1, -1):
        d = day - timedelta(days=i)
        created = [t for t in tasks if t.created_at and t.created_at.date() == d]
        done = sum(1 for t in created if t.completed)
        weekly_trend.append({
            'date': d.isoformat(),
            'label': d.strftime('%a'),
            'percentage': round(done / len(created) * 100) if created else 0,
        })

    return {
        'intensityData': dict(sorted(intensity.items())),
        'categoryAnalysis': category_analysis,
        'habitStats': habit_stats,
        'avgCompletion': avg_completion,
        'bestStreak': longest_streak({date.fromisoformat(d) for d in intensity}),
        'weeklyTrend': weekly_trend,
    }


def _count_completions(session, user_id, start, end):
    return _user_completions(session, user_id, start, end).count()


def _pie_data(session, user_id, start, end):
    habit_counts = session.query(
        Habit.name,
        func.count(HabitCompletion.id).label('count')
    ).join(HabitCompletion).filter(
        Habit.user_id == user_id,
        HabitCompletion.date >= start,
        HabitCompletion.date <= end,
    ).group_by(Habit.name).all()
    return [{'label': h.name, 'value': h.count} for h in habit_counts]


def chart_data(session, user_id, period, chart_type='bar', month=None, year=None, as_of=None):
    """Completed-habit counts for a week, a month (per day) or a year (per month)."""
    day = as_of or today()
    selected_month = day.month if month is None else month
    selected_year = day.year if year is None else year
    if not 1 <= selected_month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not MINYEAR <= selected_year <= MAXYEAR:
        raise ValidationError(f"year must be between {MINYEAR} and {MAXYEAR}")

    labels = []
    data_points = []

    if period == 'week':
        for i in range(6, -1, -1):
            d = day - timedelta(days=i)
            labels.append(f"{d.strftime('%a')} {d.day}")  # e.g., "Mon 12"
            data_points.append(_count_completions(session, user_id, d, d))
        start_date, end_date = day - timedelta(days=6), day

    elif period == 'month':
        num_days = calendar.monthrange(selected_year, selected_month)[1]
        for day_of_month in range(1, num_days + 1):
            labels.append(str(day_of_month))
            d = date(selected_year, selected_month, day_of_month)
            data_points.append(_count_completions(session, user_id, d, d))
        start_date = date(selected_year, selected_month, 1)
        end_date = date(selected_year, selected_month, num_days)

    elif period == 'year':
        for m in range(1, 13):
            labels.append(calendar.month_abbr[m])
            last_day = calendar.monthrange(selected_year, m)[1]
            data_points.append(_count_completions(
                session, user_id, date(selected_year, m, 1), date(selected_year, m, last_day)
            ))
        start_date, end_date = date(selected_year, 1, 1), date(selected_year, 12, 31)

    else:
        raise ValidationError("period must be week, month or year")

    pie_data = _pie_data(session, user_id, start_date, end_date) if chart_type == 'pie' else []
    return {
        'labels': labels,
        'data': data_points,
        'pieData': pie_data,
    }


def dashboard_summary(session, user_id, as_of=None):
    """Today's habit completion rate and what is still pending."""
    day = as_of or today()
    habits = session.query(Habit).filter(Habit.user_id == user_id).all()

    pending_habits = []
    completed_count = 0
    for h in habits:
        done = session.query(HabitCompletion).filter_by(habit_id=h.id, date=day).first()
        if done:
            completed_count += 1
        else:
            pending_habits.append(h)

    open_tasks = session.query(Task).filter(
        Task.user_id == user_id, Task.completed == False  # noqa: E712
    ).order_by(Task.created_at.desc()).limit(5).all()

    return {
        'completion_rate': int((completed_count / len(habits) * 100)) if habits else 0,
        'pending_habits': pending_habits,
        'open_tasks': open_tasks,
    }
