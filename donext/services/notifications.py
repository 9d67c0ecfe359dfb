from donext.errors import NotFoundError
from donext.models import Notification


def list_notifications(session, user_id):
    return session.query(Notification).filter_by(user_id=user_id).order_by(
        Notification.created_at.desc(), Notification.id.desc()
    ).all()


def create_notification(session, user_id, title, message, type='info'):
    notification = Notification(user_id=user_id, title=title, message=message, type=type)
    session.add(notification)
    session.commit()
    return notification


def mark_read(session, user_id, notification_id):
    """Mark one notification, or every one when ``notification_id`` is "all"."""
    if notification_id == 'all':
        updated = session.query(Notification).filter_by(user_id=user_id, read=False).update({'read': True})
        session.commit()
        return updated

    notification = session.query(Notification).filter_by(id=notification_id, user_id=user_id).first()
    if not notification:
        raise NotFoundError("Notification not found")
    notification.read = True
    session.commit()
    return 1
