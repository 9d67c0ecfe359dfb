from donext.api import accountability, analytics, auth, calendar, goals, habits, notifications, tasks, teams

BLUEPRINTS = [
    auth.bp,
    tasks.bp,
    habits.bp,
    goals.bp,
    teams.bp,
    accountability.bp,
    calendar.bp,
    analytics.bp,
    notifications.bp,
]
