#!/usr/bin/env python
"""
Seed script that creates the demo account with a few habits, routine steps
and tasks. Safe to run repeatedly; existing rows are left alone.
"""
from donext.app import create_app
from donext.auth import hash_password
from donext.config import load_settings
from donext.models import Habit, RoutineStep, Task, User, db

DEMO_HABITS = [
    ('Morning Jog', '🏃', 'Health'),
    ('Read 30 mins', '📚', 'Study'),
    ('Meditate', '🧘', 'Personal'),
]

DEMO_ROUTINE = [
    ('06:30', 'Wake up and stretch', '🌅', 'Morning'),
    ('07:00', 'Plan the day', '📝', 'Morning'),
    ('22:00', 'Review today', '🌙', 'Evening'),
]

DEMO_TASKS = [
    ('Finish project report', 'High', 'Work'),
    ('Book dentist appointment', 'Medium', 'Personal'),
    ('Revise chapter 4', 'Low', 'Study'),
]


def seed_demo(app=None):
    """Seed the database with the demo user and sample data."""
    settings = load_settings()
    app = app or create_app()
    with app.app_context():
        user = User.query.filter_by(email=settings.DEMO_USER_EMAIL).first()
        if not user:
            user = User(
                email=settings.DEMO_USER_EMAIL,
                name=settings.DEMO_USER_NAME,
                password_hash=hash_password(settings.DEMO_USER_PASSWORD),
            )
            db.session.add(user)
            db.session.commit()
            print(f"Created demo user: {user.email}")
        else:
            print(f"Demo user already exists: {user.email}")

        added_count = 0
        for name, icon, category in DEMO_HABITS:
            if not Habit.query.filter_by(name=name, user_id=user.id).first():
                db.session.add(Habit(name=name, icon=icon, category=category, user_id=user.id))
                added_count += 1
                print(f"Added habit: {name}")

        for time, task, icon, category in DEMO_ROUTINE:
            if not RoutineStep.query.filter_by(task=task, user_id=user.id).first():
                db.session.add(RoutineStep(time=time, task=task, icon=icon, category=category, user_id=user.id))
                added_count += 1
                print(f"Added routine step: {task}")

        for title, priority, category in DEMO_TASKS:
            if not Task.query.filter_by(title=title, user_id=user.id).first():
                db.session.add(Task(title=title, priority=priority, category=category, user_id=user.id))
                added_count += 1
                print(f"Added task: {title}")

        db.session.commit()
        print(f"\nSeeding complete! Added {added_count} new records.")
        return user


if __name__ == '__main__':
    seed_demo()
