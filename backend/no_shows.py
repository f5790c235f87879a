"""
GameOn No-Show Tracking
Registrants who neither attended nor paid, kept for fee follow-up.
"""

import logging
from datetime import datetime
from sqlalchemy import func

from database import Registration, NoShow
from errors import ValidationError, NotFound
from payments import set_payment_status
from event_service import get_event, parse_datetime

logger = logging.getLogger(__name__)

BULK_IMPORT_NOTE = 'Bulk imported from non-attendance'


def _recorded_emails(db, event_id) -> set:
    rows = db.query(NoShow.email).filter(NoShow.event_id == event_id).all()
    return {email.lower() for (email,) in rows}


def potential_no_shows(db, event_id) -> list:
    """
    Active registrations of an event that did not attend, have no paid
    payment and are not yet recorded as no-shows.
    """
    get_event(db, event_id)

    registrations = db.query(Registration).filter(
        Registration.event_id == event_id,
        Registration.attended == False,  # noqa: E712
        Registration.deleted == False  # noqa: E712
    ).order_by(Registration.created_at.asc()).all()

    already_recorded = _recorded_emails(db, event_id)
    candidates = []
    for registration in registrations:
        is_paid = registration.payment is not None and registration.payment.paid
        if is_paid or registration.email.lower() in already_recorded:
            continue
        candidates.append({
            'id': registration.id,
            'email': registration.email,
            'firstName': registration.first_name,
            'lastName': registration.last_name,
            'createdAt': registration.created_at.isoformat() if registration.created_at else None,
            'paymentType': registration.payment_type
        })
    return candidates


def bulk_import(db, candidates, event_id, event_title, event_date) -> int:
    """
    Record a batch of candidates as no-shows.

    Candidates whose email is already recorded for the event (or repeated in
    the batch) are skipped, so importing the same list twice adds nothing the
    second time. All rows are written in one commit.

    Returns:
        int: number of rows inserted
    """
    if not candidates or not isinstance(candidates, list):
        raise ValidationError("No candidates provided")
    if not event_id or not event_title or not event_date:
        raise ValidationError("Missing event details")

    event_date = parse_datetime(event_date, 'eventDate')
    seen = _recorded_emails(db, event_id)

    rows = []
    for candidate in candidates:
        email = (candidate.get('email') or '').strip().lower()
        first_name = (candidate.get('firstName') or '').strip()
        if not email or not first_name:
            raise ValidationError("Each candidate needs an email and first name")
        if email in seen:
            continue
        seen.add(email)
        rows.append(NoShow(
            email=email,
            event_id=event_id,
            event_title=event_title,
            event_date=event_date,
            first_name=first_name,
            last_name=candidate.get('lastName') or None,
            fee_paid=False,
            notes=BULK_IMPORT_NOTE
        ))

    if rows:
        db.add_all(rows)
        db.commit()
    logger.info(f"Bulk imported {len(rows)} no-shows for event {event_id}")
    return len(rows)


def list_no_shows(db, fee_paid=None, email=None) -> list:
    query = db.query(NoShow)
    if fee_paid is not None:
        query = query.filter(NoShow.fee_paid == fee_paid)
    if email:
        query = query.filter(NoShow.email.ilike(f"%{email}%"))
    return query.order_by(NoShow.created_at.desc(), NoShow.id.desc()).all()


def create_no_show(db, data: dict) -> NoShow:
    required = ('email', 'eventId', 'eventTitle', 'eventDate', 'firstName')
    if any(not data.get(field) for field in required):
        raise ValidationError("Missing required fields")

    no_show = NoShow(
        email=data['email'].strip().lower(),
        event_id=data['eventId'],
        event_title=data['eventTitle'],
        event_date=parse_datetime(data['eventDate'], 'eventDate'),
        first_name=data['firstName'].strip(),
        last_name=data.get('lastName') or None,
        notes=data.get('notes') or None
    )
    db.add(no_show)
    db.commit()
    db.refresh(no_show)
    return no_show


def _matching_registration(db, no_show):
    query = db.query(Registration).filter(
        Registration.event_id == no_show.event_id,
        func.lower(Registration.email) == no_show.email.lower(),
        func.lower(Registration.first_name) == no_show.first_name.lower(),
        func.lower(Registration.last_name) == (no_show.last_name or '').lower()
    )
    return query.order_by(Registration.deleted.asc()).first()


def update_no_show(db, no_show_id, data: dict) -> NoShow:
    """
    Update fee status and notes.

    A feePaid change is mirrored onto the matching registration's payment and
    stamps (or clears) paid_at.
    """
    no_show = db.query(NoShow).filter(NoShow.id == no_show_id).first()
    if not no_show:
        raise NotFound("No-show record not found")

    fee_paid = data.get('feePaid')
    if fee_paid is not None and not isinstance(fee_paid, bool):
        raise ValidationError("feePaid must be a boolean")

    if fee_paid is not None:
        no_show.fee_paid = fee_paid
        no_show.paid_at = datetime.utcnow() if fee_paid else None

        registration = _matching_registration(db, no_show)
        if registration is None:
            logger.warning(f"No registration found for event {no_show.event_id} and no-show {no_show.id}")
        elif registration.payment is not None or fee_paid:
            set_payment_status(db, registration, fee_paid)

    if 'notes' in data:
        no_show.notes = data['notes']

    db.commit()
    db.refresh(no_show)
    return no_show


def delete_no_show(db, no_show_id):
    no_show = db.query(NoShow).filter(NoShow.id == no_show_id).first()
    if not no_show:
        raise NotFound("No-show record not found")
    db.delete(no_show)
    db.commit()
