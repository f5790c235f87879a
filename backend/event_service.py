"""
GameOn Event Service
Event CRUD, listings and per-event statistics.
"""

import os
import logging
from datetime import datetime, time
from dateutil import parser, tz
from sqlalchemy import func

from database import Event, Registration, WaitingList, Payment, NoShow, RegistrationAction
from errors import ValidationError, NotFound, event_not_found
from payments import get_bank_account_by_id
from registration_history import record_history

logger = logging.getLogger(__name__)

# Event times are stored as naive UTC; naive input is read in this zone
EVENT_TIMEZONE = os.environ.get('EVENT_TIMEZONE', 'Europe/Prague')


def parse_datetime(value, field: str = 'date') -> datetime:
    """
    Parse an ISO-ish date string to a naive UTC datetime.

    Strings without an offset (e.g. from a datetime-local input) are taken as
    local time in EVENT_TIMEZONE.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = parser.parse(value.strip())
        except (ValueError, OverflowError):
            raise ValidationError(f"Invalid {field}")
    else:
        raise ValidationError(f"Invalid {field}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz.gettz(EVENT_TIMEZONE))
    return parsed.astimezone(tz.UTC).replace(tzinfo=None)


def to_local_time(value):
    """Convert a naive UTC datetime to EVENT_TIMEZONE"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz.UTC)
    return value.astimezone(tz.gettz(EVENT_TIMEZONE))


def _parse_number(value, field, cast=float, minimum=0):
    try:
        number = cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")
    if number < minimum:
        raise ValidationError(f"{field} must not be negative")
    return number


def _parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).lower() in ('1', 'true', 'yes', 'on')


def apply_event_fields(event: Event, data: dict, partial: bool = False) -> Event:
    """Validate request fields and copy them onto an event"""
    if not partial:
        missing = [field for field in ('title', 'from', 'to') if not data.get(field)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if 'title' in data:
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError("Title is required")
        event.title = title
    if 'description' in data:
        event.description = data.get('description') or None
    if 'place' in data:
        event.place = data.get('place') or None
    if 'price' in data:
        event.price = _parse_number(data.get('price') or 0, 'price')
    if 'capacity' in data:
        event.capacity = _parse_number(data.get('capacity') or 0, 'capacity', cast=int)
    if 'from' in data:
        event.from_time = parse_datetime(data['from'], 'from')
    if 'to' in data:
        event.to_time = parse_datetime(data['to'], 'to')
    if 'visible' in data:
        event.visible = _parse_bool(data['visible'])
    if 'bankAccountId' in data:
        bank_account_id = data.get('bankAccountId') or None
        if bank_account_id and not get_bank_account_by_id(bank_account_id):
            raise ValidationError(f"Bank account with ID '{bank_account_id}' not found")
        event.bank_account_id = bank_account_id

    if event.from_time and event.to_time and event.from_time > event.to_time:
        raise ValidationError("Event start must not be after its end")
    return event


def get_event(db, event_id) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise event_not_found(event_id)
    return event


def active_counts(db, event_ids) -> dict:
    """event id -> number of active registrations"""
    if not event_ids:
        return {}
    rows = db.query(Registration.event_id, func.count(Registration.id)).filter(
        Registration.event_id.in_(event_ids),
        Registration.deleted == False  # noqa: E712
    ).group_by(Registration.event_id).all()
    return dict(rows)


def list_public_events(db, include_past: bool = False, include_hidden: bool = False) -> list:
    query = db.query(Event)
    if not include_hidden:
        query = query.filter(Event.visible == True)  # noqa: E712
    if not include_past:
        query = query.filter(Event.to_time >= datetime.utcnow())
    return query.order_by(Event.from_time.asc()).all()


def latest_event(db, include_hidden: bool = False):
    """Next upcoming event, falling back to the most recent past one"""
    query = db.query(Event)
    if not include_hidden:
        query = query.filter(Event.visible == True)  # noqa: E712
    upcoming = query.filter(Event.to_time >= datetime.utcnow()).order_by(Event.from_time.asc()).first()
    if upcoming:
        return upcoming
    return query.order_by(Event.from_time.desc()).first()


def list_admin_events(db, page=None, limit=None):
    """Newest first; paginated only when both page and limit are given"""
    query = db.query(Event).order_by(Event.from_time.desc())
    total = query.count()
    if page and limit:
        query = query.offset((page - 1) * limit).limit(limit)
    return query.all(), total


def list_past_events(db) -> list:
    return db.query(Event).filter(Event.to_time < datetime.utcnow()).order_by(Event.from_time.desc()).all()


def create_event(db, data: dict, user_id=None) -> Event:
    event = apply_event_fields(Event(price=0, capacity=0, visible=True), data)
    db.add(event)
    db.flush()
    record_history(db, event.id, RegistrationAction.EVENT_CREATED, user_id=user_id, event_title=event.title)
    db.commit()
    db.refresh(event)
    logger.info(f"Event {event.id} created: {event.title}")
    return event


def update_event(db, event_id, data: dict, user_id=None) -> Event:
    event = get_event(db, event_id)
    apply_event_fields(event, data, partial=True)
    record_history(db, event.id, RegistrationAction.EVENT_UPDATED, user_id=user_id, event_title=event.title)
    db.commit()
    db.refresh(event)
    logger.info(f"Event {event.id} updated")
    return event


def delete_event(db, event_id, user_id=None):
    """Hard delete; registrations, payments and waiting list go with it"""
    event = get_event(db, event_id)
    record_history(db, event.id, RegistrationAction.EVENT_DELETED, user_id=user_id, event_title=event.title)
    db.delete(event)
    db.commit()
    logger.info(f"Event {event_id} deleted")


def duplicate_event(db, source_event_id, data: dict, user_id=None) -> Event:
    """New event copied from a source event; fields in data override the copy"""
    source = db.query(Event).filter(Event.id == source_event_id).first()
    if not source:
        raise NotFound("Source event not found")

    event = Event(
        title=source.title,
        description=source.description,
        price=source.price,
        place=source.place,
        capacity=source.capacity,
        from_time=source.from_time,
        to_time=source.to_time,
        visible=source.visible,
        bank_account_id=source.bank_account_id
    )
    apply_event_fields(event, data, partial=True)
    db.add(event)
    db.flush()
    record_history(db, event.id, RegistrationAction.EVENT_CREATED, user_id=user_id, event_title=event.title)
    db.commit()
    db.refresh(event)
    logger.info(f"Event {source_event_id} duplicated as {event.id}")
    return event


def event_stats(db, date_from, date_to) -> dict:
    """
    Registration, attendance, payment, waiting-list and no-show counts for
    events starting within [date_from, date_to]. date_to covers its whole day.
    """
    start = parse_datetime(date_from, 'from')
    end = parse_datetime(date_to, 'to')
    if isinstance(date_to, str) and len(date_to.strip()) <= 10:
        # Date-only upper bound includes that whole local day
        end = parse_datetime(datetime.combine(parser.parse(date_to).date(), time.max), 'to')
    if start > end:
        raise ValidationError("'from' must not be after 'to'")

    events = db.query(Event).filter(
        Event.from_time >= start,
        Event.from_time <= end
    ).order_by(Event.from_time.asc()).all()

    stats = []
    for event in events:
        active = db.query(Registration).filter(
            Registration.event_id == event.id,
            Registration.deleted == False  # noqa: E712
        )
        registrations = active.count()
        attendees = active.filter(Registration.attended == True).count()  # noqa: E712
        paid = active.join(Payment, Payment.registration_id == Registration.id).filter(
            Payment.paid == True  # noqa: E712
        ).count()
        waiting = db.query(WaitingList).filter(WaitingList.event_id == event.id).count()
        no_shows = db.query(NoShow).filter(NoShow.event_id == event.id).count()
        stats.append({
            'id': event.id,
            'title': event.title,
            'from': event.from_time.isoformat(),
            'capacity': event.capacity,
            'registrations': registrations,
            'attendees': attendees,
            'paid': paid,
            'waitingList': waiting,
            'noShows': no_shows
        })

    summary = {
        'totalEvents': len(stats),
        'totalRegistrations': sum(s['registrations'] for s in stats),
        'totalAttendees': sum(s['attendees'] for s in stats),
        'totalPaid': sum(s['paid'] for s in stats),
        'totalWaitingList': sum(s['waitingList'] for s in stats),
        'totalNoShows': sum(s['noShows'] for s in stats),
    }
    return {'events': stats, 'summary': summary}
