"""Accountability partners: requests, mirrored partnerships and partner matching."""

import logging
from collections import Counter
from datetime import timedelta

from sqlalchemy import or_

from donext.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from donext.models import (
    AccountabilityPartnership,
    AccountabilityRequest,
    Goal,
    Habit,
    HabitCompletion,
    Task,
    User,
    utcnow,
)
from donext.states import PARTNERSHIP_STATUS, REQUEST_STATUS

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 0.3
MAX_MATCHES = 10


def _partnership(session, user_id, partner_id):
    """The live (not ended) partnership row from user to partner, if any."""
    return session.query(AccountabilityPartnership).filter(
        AccountabilityPartnership.user_id == user_id,
        AccountabilityPartnership.partner_id == partner_id,
        AccountabilityPartnership.status != 'Ended',
    ).first()


def get_owned_partnership(session, user_id, partnership_id):
    partnership = session.query(AccountabilityPartnership).filter_by(id=partnership_id, user_id=user_id).first()
    if not partnership:
        raise NotFoundError("Partnership not found")
    return partnership


def send_request(session, user_id, recipient_email, message=None):
    recipient = session.query(User).filter_by(email=recipient_email.strip().lower()).first()
    if not recipient:
        raise NotFoundError("Recipient not found")
    if recipient.id == user_id:
        raise ValidationError("Cannot send a request to yourself")

    if _partnership(session, user_id, recipient.id):
        raise ConflictError("Already accountability partners")

    pending = session.query(AccountabilityRequest).filter(
        AccountabilityRequest.status == 'Pending',
        or_(
            (AccountabilityRequest.sender_id == user_id) & (AccountabilityRequest.recipient_id == recipient.id),
            (AccountabilityRequest.sender_id == recipient.id) & (AccountabilityRequest.recipient_id == user_id),
        ),
    ).first()
    if pending:
        raise ConflictError("Request already sent")

    request = AccountabilityRequest(sender_id=user_id, recipient_id=recipient.id, message=message)
    session.add(request)
    session.commit()
    return request


def _activate(session, user_id, partner_id, now):
    partnership = _partnership(session, user_id, partner_id)
    if partnership is not None:
        partnership.status = PARTNERSHIP_STATUS.check(partnership.status, 'Active')
        return partnership
    # ended rows stay as history; a new partnership gets a new row
    partnership = AccountabilityPartnership(user_id=user_id, partner_id=partner_id, status='Active', start_date=now)
    session.add(partnership)
    return partnership


def respond_to_request(session, user_id, request_id, accept):
    request = session.get(AccountabilityRequest, request_id)
    if not request:
        raise NotFoundError("Request not found")
    if request.recipient_id != user_id:
        raise AuthorizationError("Only the recipient can respond to this request")
    if request.status != 'Pending':
        raise ConflictError("Request has already been responded to")

    request.status = REQUEST_STATUS.check(request.status, 'Accepted' if accept else 'Rejected')
    request.responded_at = utcnow()

    if accept:
        _activate(session, request.sender_id, request.recipient_id, request.responded_at)
        _activate(session, request.recipient_id, request.sender_id, request.responded_at)
        logger.info("Users %s and %s are now partners", request.sender_id, request.recipient_id)

    session.commit()
    return request


def update_partnership(session, user_id, data):
    partnership = get_owned_partnership(session, user_id, data.partnership_id)
    if data.status is not None:
        partnership.status = PARTNERSHIP_STATUS.check(partnership.status, data.status)
        if data.status == 'Ended' and partnership.end_date is None:
            partnership.end_date = utcnow()
    if data.check_in_frequency is not None:
        partnership.check_in_frequency = data.check_in_frequency
    if data.shared_goals is not None:
        partnership.shared_goals = data.shared_goals
    session.commit()
    return partnership


def record_check_in(session, user_id, partnership_id):
    partnership = get_owned_partnership(session, user_id, partnership_id)
    if partnership.status != 'Active':
        raise ValidationError("Check-ins need an active partnership")
    partnership.last_check_in = utcnow()
    session.commit()
    return partnership


def end_partnership(session, user_id, partnership_id):
    partnership = get_owned_partnership(session, user_id, partnership_id)
    now = utcnow()
    for row in (partnership, _partnership(session, partnership.partner_id, user_id)):
        if row is not None and row.status != 'Ended':
            row.status = PARTNERSHIP_STATUS.check(row.status, 'Ended')
            row.end_date = now
    session.commit()


def active_partnerships(session, user_id):
    return session.query(AccountabilityPartnership).filter_by(user_id=user_id, status='Active').all()


def requests_for(session, user_id):
    sent = session.query(AccountabilityRequest).filter_by(sender_id=user_id).order_by(
        AccountabilityRequest.sent_at.desc()
    ).all()
    received = session.query(AccountabilityRequest).filter_by(recipient_id=user_id).order_by(
        AccountabilityRequest.sent_at.desc()
    ).all()
    return {
        'sent': [r.to_dict() for r in sent],
        'received': [r.to_dict() for r in received],
    }


def partnership_analytics(session, user_id):
    partnerships = session.query(AccountabilityPartnership).filter_by(user_id=user_id).all()
    since = utcnow() - timedelta(days=30)
    total = len(partnerships)
    recent = sum(1 for p in partnerships if p.last_check_in and p.last_check_in >= since)
    return {
        'totalPartnerships': total,
        'activePartnerships': sum(1 for p in partnerships if p.status == 'Active'),
        'pausedPartnerships': sum(1 for p in partnerships if p.status == 'Paused'),
        'checkInStats': dict(Counter(p.check_in_frequency for p in partnerships)),
        'recentCheckIns': recent,
        'checkInRate': round(recent / total * 100) if total else 0,
    }


def partner_progress(session, user_id, partner_id):
    """Seven-day activity summary of a partner; only visible to active partners."""
    partnership = session.query(AccountabilityPartnership).filter_by(
        user_id=user_id, partner_id=partner_id, status='Active'
    ).first()
    if not partnership:
        raise AuthorizationError("Not an accountability partner")

    since = utcnow() - timedelta(days=7)
    tasks = session.query(Task).filter(Task.user_id == partner_id, Task.created_at >= since).all()
    completions = session.query(HabitCompletion).join(Habit).filter(
        Habit.user_id == partner_id, HabitCompletion.date >= since.date()
    ).all()
    goals = session.query(Goal).filter_by(user_id=partner_id, status='Active').all()

    activity = [t.updated_at for t in tasks if t.updated_at]
    return {
        'partnerId': partner_id,
        'taskCompletionRate': round(sum(1 for t in tasks if t.completed) / len(tasks) * 100) if tasks else 0,
        'habitCompletions': len(completions),
        'uniqueHabits': len({c.habit_id for c in completions}),
        'goalProgress': round(sum(g.progress for g in goals) / len(goals)) if goals else 0,
        'activeGoals': len(goals),
        'recentTasks': len(tasks),
        'lastActive': max(activity).isoformat() if activity else None,
    }


# --- matching -----------------------------------------------------------

def _common_goals(user_goals, partner_goals):
    return [
        ug for ug in user_goals
        if any(
            ug.category == pg.category
            or pg.title.lower() in ug.title.lower()
            or ug.title.lower() in pg.title.lower()
            for pg in partner_goals
        )
    ]


def _complementary_habits(user_habits, partner_habits):
    return [
        uh for uh in user_habits
        if any(
            uh.frequency != ph.frequency or uh.category != ph.category or uh.name != ph.name
            for ph in partner_habits
        )
    ]


def compatibility_score(user_goals, user_habits, partner_goals, partner_habits):
    """Four equally weighted parts: goals, habits, categories, activity level."""
    score = len(_common_goals(user_goals, partner_goals)) / max(len(user_goals), 1) * 0.25
    score += len(_complementary_habits(user_habits, partner_habits)) / max(len(user_habits), 1) * 0.25

    user_categories = {g.category for g in user_goals}
    partner_categories = {g.category for g in partner_goals}
    score += len(user_categories & partner_categories) / max(len(user_categories), 1) * 0.25

    max_level = max(len(user_habits), len(partner_habits))
    if max_level:
        score += (1 - abs(len(user_habits) - len(partner_habits)) / max_level) * 0.25
    else:
        score += 0.25
    return min(score, 1.0)


def potential_partners(session, user_id):
    user_goals = session.query(Goal).filter_by(user_id=user_id, status='Active').all()
    user_habits = session.query(Habit).filter_by(user_id=user_id).all()

    excluded = {user_id}
    excluded.update(
        p.partner_id for p in session.query(AccountabilityPartnership).filter(
            AccountabilityPartnership.user_id == user_id,
            AccountabilityPartnership.status != 'Ended',
        )
    )
    excluded.update(
        r.sender_id for r in session.query(AccountabilityRequest).filter_by(recipient_id=user_id, status='Pending')
    )

    matches = []
    for candidate in session.query(User).filter(User.id.notin_(excluded)).all():
        goals = session.query(Goal).filter_by(user_id=candidate.id, status='Active').all()
        habits = session.query(Habit).filter_by(user_id=candidate.id).all()
        score = compatibility_score(user_goals, user_habits, goals, habits)
        if score > MATCH_THRESHOLD:
            matches.append(dict(
                candidate.to_public_dict(),
                compatibilityScore=round(score, 3),
                commonGoals=[g.title for g in _common_goals(user_goals, goals)],
            ))

    matches.sort(key=lambda m: m['compatibilityScore'], reverse=True)
    return matches[:MAX_MATCHES]
