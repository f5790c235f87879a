"""
GameOn Registration History
Append-only log of registration state transitions.
"""

import logging
from sqlalchemy import or_

from database import RegistrationHistory, RegistrationAction

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


def record_history(db, event_id, action_type: str, registration=None, waiting_list_entry=None,
                   user_id: str = None, event_title: str = None, **fields):
    """
    Append a history row in the caller's transaction (no commit).

    Personal details are copied from the registration or waiting-list entry when
    given; explicit keyword fields (first_name, last_name, email, phone_number)
    win over them.
    """
    if action_type not in RegistrationAction.ALL:
        raise ValueError(f"Unknown registration action: {action_type}")

    source = registration if registration is not None else waiting_list_entry
    details = {}
    if source is not None:
        details = {
            'first_name': source.first_name,
            'last_name': source.last_name,
            'email': source.email,
            'phone_number': source.phone_number,
        }
    details.update({k: v for k, v in fields.items() if v is not None})

    entry = RegistrationHistory(
        event_id=event_id,
        registration_id=registration.id if registration is not None else None,
        waiting_list_id=waiting_list_entry.id if waiting_list_entry is not None else None,
        action_type=action_type,
        user_id=user_id,
        event_title=event_title,
        **details
    )
    db.add(entry)
    return entry


def clamp_page(limit, offset):
    """Limit within 1..MAX_LIMIT, offset not negative"""
    return max(1, min(int(limit), MAX_LIMIT)), max(0, int(offset))


def query_history(db, event_id=None, action_type=None, search=None,
                  limit: int = DEFAULT_LIMIT, offset: int = 0):
    """Newest-first page of history rows and the total matching count"""
    limit, offset = clamp_page(limit, offset)

    query = db.query(RegistrationHistory)
    if event_id is not None:
        query = query.filter(RegistrationHistory.event_id == event_id)
    if action_type:
        query = query.filter(RegistrationHistory.action_type == action_type)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(
            RegistrationHistory.email.ilike(term),
            RegistrationHistory.first_name.ilike(term),
            RegistrationHistory.last_name.ilike(term),
            RegistrationHistory.event_title.ilike(term)
        ))

    total = query.count()
    entries = (
        query.order_by(RegistrationHistory.timestamp.desc(), RegistrationHistory.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return entries, total
