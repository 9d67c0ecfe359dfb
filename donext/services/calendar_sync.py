import logging

from donext.errors import ExternalServiceError, NotFoundError, ValidationError
from donext.models import CalendarConnection, CalendarEvent, utcnow
from donext.services.calendar_providers import get_provider
from donext.services.tasks import get_owned_task

logger = logging.getLogger(__name__)


def get_owned_connection(session, user_id, connection_id):
    connection = session.query(CalendarConnection).filter_by(id=connection_id, user_id=user_id).first()
    if not connection:
        raise NotFoundError("Calendar connection not found")
    return connection


def get_owned_event(session, user_id, event_id):
    event = session.query(CalendarEvent).filter_by(id=event_id, user_id=user_id).first()
    if not event:
        raise NotFoundError("Event not found")
    return event


def list_connections(session, user_id):
    return session.query(CalendarConnection).filter_by(user_id=user_id).order_by(CalendarConnection.created_at).all()


def list_events(session, user_id, start=None, end=None):
    query = session.query(CalendarEvent).filter(CalendarEvent.user_id == user_id)
    if start:
        query = query.filter(CalendarEvent.end >= start)
    if end:
        query = query.filter(CalendarEvent.start <= end)
    return query.order_by(CalendarEvent.start).all()


def connect(session, user_id, provider_name, auth_code):
    provider = get_provider(provider_name)
    tokens = provider.exchange_code(auth_code)
    calendar_id = provider.primary_calendar_id(tokens['access_token'])

    connection = CalendarConnection(
        user_id=user_id,
        provider=provider.name,
        calendar_id=calendar_id,
        **tokens,
    )
    session.add(connection)
    session.commit()
    logger.info("User %s connected %s calendar %s", user_id, provider.name, calendar_id)

    try:
        sync_connection(session, connection)
    except ExternalServiceError as e:
        logger.warning("Initial sync for connection %s failed: %s", connection.id, e)
    return connection


def _token_usable(connection):
    return connection.token_expiry is None or connection.token_expiry > utcnow()


def sync_connection(session, connection):
    """Pull provider events into CalendarEvent rows, keyed by external id."""
    if not connection.sync_enabled:
        return {'connectionId': connection.id, 'skipped': True, 'created': 0, 'updated': 0}
    if not _token_usable(connection):
        raise ExternalServiceError("Calendar access token has expired; reconnect the calendar")

    provider = get_provider(connection.provider)
    remote_events = provider.fetch_events(connection.calendar_id, connection.access_token)

    existing = {
        e.external_id: e
        for e in session.query(CalendarEvent).filter_by(connection_id=connection.id)
        if e.external_id
    }
    created = updated = 0
    for remote in remote_events:
        if remote['start'] is None:
            continue
        if remote['end'] is None or remote['end'] < remote['start']:
            remote['end'] = remote['start']

        event = existing.get(remote['external_id'])
        if event is None:
            event = CalendarEvent(user_id=connection.user_id, connection_id=connection.id, event_type='Event')
            session.add(event)
            created += 1
        else:
            updated += 1
        for field, value in remote.items():
            setattr(event, field, value)

    connection.last_sync = utcnow()
    session.commit()
    logger.info("Synced connection %s: %d new, %d updated", connection.id, created, updated)
    return {'connectionId': connection.id, 'skipped': False, 'created': created, 'updated': updated}


def sync_all(session, user_id):
    results = []
    for connection in list_connections(session, user_id):
        try:
            results.append(sync_connection(session, connection))
        except ExternalServiceError as e:
            session.rollback()
            logger.warning("Sync failed for connection %s: %s", connection.id, e)
            results.append({'connectionId': connection.id, 'skipped': False, 'error': e.message})
    return results


def _push(connection, event):
    if not connection.sync_enabled or not _token_usable(connection):
        logger.info("Skipping push of event %s: connection %s not usable", event.id, connection.id)
        return
    provider = get_provider(connection.provider)
    try:
        event.external_id = provider.push_event(connection.calendar_id, connection.access_token, event)
    except ExternalServiceError as e:
        logger.warning("Could not push event %s to %s: %s", event.id, connection.provider, e)


def create_event(session, user_id, data):
    if data.task_id is not None:
        get_owned_task(session, user_id, data.task_id)
    connection = None
    if data.connection_id is not None:
        connection = get_owned_connection(session, user_id, data.connection_id)

    event = CalendarEvent(
        user_id=user_id,
        connection_id=connection.id if connection else None,
        **data.model_dump(exclude={'connection_id'}),
    )
    session.add(event)
    session.flush()
    if connection:
        _push(connection, event)
    session.commit()
    return event


def update_event(session, user_id, data):
    event = get_owned_event(session, user_id, data.event_id)
    changes = data.model_dump(exclude={'event_id'}, exclude_unset=True)
    if changes.get('task_id') is not None:
        get_owned_task(session, user_id, changes['task_id'])

    for field, value in changes.items():
        setattr(event, field, value)
    if event.end <= event.start:
        raise ValidationError("End time must be after start time")
    if event.connection and not event.external_id:
        _push(event.connection, event)
    session.commit()
    return event


def delete_event(session, user_id, event_id):
    event = get_owned_event(session, user_id, event_id)
    connection = event.connection
    if connection and event.external_id and _token_usable(connection):
        try:
            get_provider(connection.provider).delete_event(
                connection.calendar_id, connection.access_token, event.external_id
            )
        except ExternalServiceError as e:
            logger.warning("Could not delete remote event %s: %s", event.external_id, e)
    session.delete(event)
    session.commit()


def delete_connection(session, user_id, connection_id):
    connection = get_owned_connection(session, user_id, connection_id)
    session.query(CalendarEvent).filter_by(connection_id=connection.id).delete()
    session.delete(connection)
    session.commit()


def set_sync_enabled(session, user_id, connection_id, enabled):
    connection = get_owned_connection(session, user_id, connection_id)
    connection.sync_enabled = enabled
    session.commit()
    return connection
