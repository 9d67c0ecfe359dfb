import logging
from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from donext.errors import NotFoundError
from donext.models import Habit, HabitCompletion, RoutineCompletion, RoutineStep, today

logger = logging.getLogger(__name__)


def current_streak(days, as_of=None):
    """Consecutive completed days ending today; 0 if today is not done."""
    check_date = as_of or today()
    streak = 0
    while check_date in days:
        streak += 1
        check_date -= timedelta(days=1)
    return streak


def longest_streak(days):
    longest = 0
    run = 0
    previous = None
    for day in sorted(days):
        if previous is not None and day - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


def completion_days(habit):
    return {c.date for c in habit.completions}


# --- habits -------------------------------------------------------------

def get_owned_habit(session, user_id, habit_id):
    habit = session.query(Habit).filter(Habit.id == habit_id, Habit.user_id == user_id).first()
    if not habit:
        raise NotFoundError("Habit not found")
    return habit


def list_habits(session, user_id):
    habits = session.query(Habit).filter(Habit.user_id == user_id).order_by(
        Habit.created_at.desc(), Habit.id.desc()
    ).all()
    day = today()
    habits_data = []
    for h in habits:
        days = completion_days(h)
        data = h.to_dict(with_completions=True)
        data['completedToday'] = day in days
        data['streak'] = current_streak(days, day)
        habits_data.append(data)
    return habits_data


def create_habit(session, user_id, fields):
    habit = Habit(user_id=user_id, **fields)
    session.add(habit)
    session.commit()
    return habit


def update_habit(session, user_id, habit_id, changes):
    habit = get_owned_habit(session, user_id, habit_id)
    for field, value in changes.items():
        setattr(habit, field, value)
    session.commit()
    return habit


def delete_habit(session, user_id, habit_id):
    habit = get_owned_habit(session, user_id, habit_id)
    # completions have no cascade, remove them first
    session.query(HabitCompletion).filter_by(habit_id=habit.id).delete()
    session.delete(habit)
    session.commit()


def toggle_habit(session, user_id, habit_id, day=None):
    """Flip the completion for ``day``. Returns the new completed state."""
    habit = get_owned_habit(session, user_id, habit_id)
    day = day or today()

    completion = session.query(HabitCompletion).filter_by(habit_id=habit.id, date=day).first()
    if completion:
        session.delete(completion)
        session.commit()
        is_completed = False
    else:
        session.add(HabitCompletion(habit_id=habit.id, date=day))
        try:
            session.commit()
        except IntegrityError:
            # a concurrent request inserted the same day first
            session.rollback()
        is_completed = True

    logger.info("Habit %s on %s completed=%s", habit.id, day, is_completed)
    return is_completed


# --- routine ------------------------------------------------------------

def get_owned_step(session, user_id, step_id):
    step = session.query(RoutineStep).filter(
        RoutineStep.id == step_id, RoutineStep.user_id == user_id
    ).first()
    if not step:
        raise NotFoundError("Routine step not found")
    return step


def list_routine(session, user_id):
    steps = session.query(RoutineStep).filter(RoutineStep.user_id == user_id).order_by(
        RoutineStep.time
    ).all()
    done = {
        c.routine_step_id
        for c in session.query(RoutineCompletion).join(RoutineStep).filter(
            RoutineStep.user_id == user_id, RoutineCompletion.date == today()
        )
    }
    return [dict(s.to_dict(), completed=s.id in done) for s in steps]


def create_step(session, user_id, fields):
    step = RoutineStep(user_id=user_id, **fields)
    session.add(step)
    session.commit()
    return step


def update_step(session, user_id, step_id, changes):
    step = get_owned_step(session, user_id, step_id)
    for field, value in changes.items():
        setattr(step, field, value)
    session.commit()
    return step


def delete_step(session, user_id, step_id):
    step = get_owned_step(session, user_id, step_id)
    session.query(RoutineCompletion).filter_by(routine_step_id=step.id).delete()
    session.delete(step)
    session.commit()


def toggle_step(session, user_id, step_id):
    step = get_owned_step(session, user_id, step_id)
    day = today()

    completion = session.query(RoutineCompletion).filter_by(routine_step_id=step.id, date=day).first()
    if completion:
        session.delete(completion)
        session.commit()
        return False

    session.add(RoutineCompletion(routine_step_id=step.id, date=day))
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
    return True
