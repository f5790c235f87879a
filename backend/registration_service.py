"""
GameOn Registration Service
Registration, waiting-list and promotion rules shared by public and admin routes.

Every operation runs in the caller's session and commits once at the end, so a
registration change and its history row land together or not at all. The
partial unique index on active registrations backs up the duplicate checks;
an IntegrityError from it is reported as a Conflict.
"""

import logging
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from database import Registration, WaitingList, PaymentType, RegistrationAction
from errors import (
    ValidationError, NotFound, Conflict, Modules, ErrorCodes, get_code
)
from registration_history import record_history
from payments import create_payment_qr
from event_service import get_event as get_event_or_404

logger = logging.getLogger(__name__)

DUPLICATE_CODE = get_code(Modules.REGISTRATION, ErrorCodes.REGISTRATION_ALREADY_EXISTS)


def mask_email(email: str) -> str:
    """abc***@domain.com, for logs"""
    if not email or '@' not in email:
        return '***'
    local, domain = email.split('@', 1)
    return f"{local[:3]}***@{domain}"


def _clean(value) -> str:
    return str(value).strip() if value is not None else ''


def normalize_person(first_name, last_name, email, phone_number=None) -> dict:
    """Trim names, lowercase email; last name defaults to ''"""
    phone = _clean(phone_number)
    return {
        'first_name': _clean(first_name),
        'last_name': _clean(last_name),
        'email': _clean(email).lower(),
        'phone_number': phone or None,
    }


def validate_payment_type(payment_type) -> str:
    if payment_type not in PaymentType.ALL:
        raise ValidationError(
            f"The payment type {payment_type} cannot be processed.",
            code=get_code(Modules.REGISTRATION, ErrorCodes.BAD_PAYMENT_TYPE)
        )
    return payment_type


def _validate_person(person: dict):
    if not person['first_name'] or not person['email']:
        raise ValidationError("First name and email are required")
    if '@' not in person['email']:
        raise ValidationError("Invalid email address")


def _identity_filters(model, event_id, person: dict):
    """Case-insensitive match on (event, email, first name, last name)"""
    return (
        model.event_id == event_id,
        func.lower(model.email) == person['email'].lower(),
        func.lower(model.first_name) == person['first_name'].lower(),
        func.lower(model.last_name) == person['last_name'].lower(),
    )


def count_active_registrations(db, event_id) -> int:
    return db.query(Registration).filter(
        Registration.event_id == event_id,
        Registration.deleted == False  # noqa: E712
    ).count()


def find_active_registration(db, event_id, person: dict):
    return db.query(Registration).filter(
        *_identity_filters(Registration, event_id, person),
        Registration.deleted == False  # noqa: E712
    ).first()


def find_deleted_registration(db, event_id, person: dict):
    return db.query(Registration).filter(
        *_identity_filters(Registration, event_id, person),
        Registration.deleted == True  # noqa: E712
    ).order_by(Registration.created_at.desc()).first()


def find_waiting_list_entry(db, event_id, person: dict):
    return db.query(WaitingList).filter(*_identity_filters(WaitingList, event_id, person)).first()


def is_event_full(db, event) -> bool:
    """Capacity 0 means the event has no limit"""
    if not event.capacity or event.capacity <= 0:
        return False
    return count_active_registrations(db, event.id) >= event.capacity


def _duplicate_registration_error(person: dict) -> Conflict:
    return Conflict(
        f"There already exists a registration for {person['first_name']} {person['last_name']} "
        f"with email {person['email']} for this event",
        code=DUPLICATE_CODE
    )


def _duplicate_waiting_list_error(person: dict) -> Conflict:
    return Conflict(
        f"There already exists a waiting list entry for {person['first_name']} {person['last_name']} "
        f"with email {person['email']} for this event",
        code=DUPLICATE_CODE
    )


def _write(db, person: dict, conflict_factory, operation):
    """Run a flush or commit, reporting a unique-index violation as a Conflict"""
    try:
        operation()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Concurrent duplicate detected for {mask_email(person['email'])}")
        raise conflict_factory(person)


def _flush(db, person: dict, conflict_factory=_duplicate_registration_error):
    _write(db, person, conflict_factory, db.flush)


def _commit(db, person: dict, conflict_factory=_duplicate_registration_error):
    _write(db, person, conflict_factory, db.commit)


def _activate_registration(db, event, person: dict, payment_type: str, user_id=None):
    """
    Reactivate a matching soft-deleted registration or insert a new one.
    Appends REACTIVATED or REGISTERED history. Does not commit.
    """
    registration = find_deleted_registration(db, event.id, person)
    if registration:
        registration.deleted = False
        registration.attended = False
        registration.phone_number = person['phone_number']
        registration.payment_type = payment_type
        registration.created_at = datetime.utcnow()
        action = RegistrationAction.REACTIVATED
    else:
        registration = Registration(event_id=event.id, payment_type=payment_type, **person)
        db.add(registration)
        action = RegistrationAction.REGISTERED

    _flush(db, person)
    record_history(db, event.id, action, registration=registration,
                   user_id=user_id, event_title=event.title)
    return registration, action


def create_registration(db, event_id, first_name, last_name, email, phone_number=None,
                        payment_type=PaymentType.CASH, user_id=None) -> dict:
    """
    Register a participant for an event.

    A full event puts the participant on the waiting list instead
    (isWaitlisted=True). Card and QR payments get a payment QR code.

    Raises:
        ValidationError: bad payment type or missing fields
        NotFound: event does not exist
        Conflict: identity already registered or on the waiting list
    """
    validate_payment_type(payment_type)
    person = normalize_person(first_name, last_name, email, phone_number)
    _validate_person(person)

    logger.info(f"Registration attempt for event {event_id} by {mask_email(person['email'])}")

    event = get_event_or_404(db, event_id)

    if find_active_registration(db, event.id, person):
        raise _duplicate_registration_error(person)

    if find_waiting_list_entry(db, event.id, person):
        raise _duplicate_waiting_list_error(person)

    if is_event_full(db, event):
        logger.info(f"Event {event.id} is at capacity ({event.capacity}), adding to waiting list")
        entry = WaitingList(event_id=event.id, payment_type=payment_type, **person)
        db.add(entry)
        _flush(db, person, _duplicate_waiting_list_error)
        record_history(db, event.id, RegistrationAction.ADDED_TO_WAITLIST, waiting_list_entry=entry,
                       user_id=user_id, event_title=event.title)
        _commit(db, person, _duplicate_waiting_list_error)
        return {
            'firstName': entry.first_name,
            'lastName': entry.last_name,
            'email': entry.email,
            'registrationId': entry.id,
            'paymentType': entry.payment_type,
            'qrCodeData': None,
            'isWaitlisted': True
        }

    registration, action = _activate_registration(db, event, person, payment_type, user_id)
    _commit(db, person)
    logger.info(f"Registration {registration.id} {action.lower()} for event {event.id}")

    qr_code_data = None
    if payment_type in PaymentType.ONLINE:
        try:
            qr_code_data = create_payment_qr(registration.first_name, event.price, event.bank_account_id)
        except Exception as e:
            # Registration stands without a QR code
            logger.error(f"Failed to generate payment QR for registration {registration.id}: {e}")

    return {
        'firstName': registration.first_name,
        'lastName': registration.last_name,
        'email': registration.email,
        'registrationId': registration.id,
        'paymentType': registration.payment_type,
        'qrCodeData': qr_code_data,
        'isWaitlisted': False,
        'reactivated': action == RegistrationAction.REACTIVATED
    }


def unregister(db, event_id, email, first_name=None, last_name=None, user_id=None) -> Registration:
    """
    Cancel the caller's active registration for an upcoming event.

    The row is soft-deleted so a later registration reactivates it; its payment
    is removed and UNREGISTERED is logged.
    """
    event = get_event_or_404(db, event_id)
    if event.to_time < datetime.utcnow():
        raise ValidationError("Cannot unregister from past events")

    email = _clean(email).lower()
    if not email:
        raise ValidationError("Your account does not have an email address")

    candidates = db.query(Registration).filter(
        Registration.event_id == event.id,
        func.lower(Registration.email) == email,
        Registration.deleted == False  # noqa: E712
    ).order_by(Registration.created_at.asc()).all()
    if not candidates:
        raise NotFound("You are not registered for this event")

    # Prefer the caller's own name when several people share the email
    registration = candidates[0]
    if first_name:
        for candidate in candidates:
            if candidate.first_name.lower() == first_name.strip().lower() and \
                    candidate.last_name.lower() == _clean(last_name).lower():
                registration = candidate
                break

    _soft_delete(db, event, registration, RegistrationAction.UNREGISTERED, user_id)
    db.commit()
    logger.info(f"Registration {registration.id} unregistered from event {event.id}")
    return registration


def _soft_delete(db, event, registration, action, user_id=None):
    registration.deleted = True
    if registration.payment is not None:
        db.delete(registration.payment)
        registration.payment = None
    record_history(db, event.id, action, registration=registration,
                   user_id=user_id, event_title=event.title)


def add_to_waiting_list(db, event_id, first_name, last_name, email, phone_number=None,
                        payment_type=PaymentType.CASH, user_id=None) -> WaitingList:
    """Put an identity on an event's waiting list"""
    validate_payment_type(payment_type)
    person = normalize_person(first_name, last_name, email, phone_number)
    _validate_person(person)

    event = get_event_or_404(db, event_id)

    if find_active_registration(db, event.id, person):
        raise Conflict("You are already registered for this event", code=DUPLICATE_CODE)
    if find_waiting_list_entry(db, event.id, person):
        raise Conflict("You are already on the waiting list for this event", code=DUPLICATE_CODE)

    entry = WaitingList(event_id=event.id, payment_type=payment_type, **person)
    db.add(entry)
    _flush(db, person, _duplicate_waiting_list_error)
    record_history(db, event.id, RegistrationAction.ADDED_TO_WAITLIST, waiting_list_entry=entry,
                   user_id=user_id, event_title=event.title)
    _commit(db, person, _duplicate_waiting_list_error)
    logger.info(f"Waiting list entry {entry.id} created for event {event.id}")
    return entry


def leave_waiting_list(db, event_id, email, first_name=None, last_name=None):
    """Remove the caller's own waiting-list entry"""
    get_event_or_404(db, event_id)
    query = db.query(WaitingList).filter(
        WaitingList.event_id == event_id,
        func.lower(WaitingList.email) == _clean(email).lower()
    )
    if first_name:
        query = query.filter(func.lower(WaitingList.first_name) == first_name.strip().lower())
        query = query.filter(func.lower(WaitingList.last_name) == _clean(last_name).lower())
    entry = query.first()
    if not entry:
        raise NotFound("You are not on the waiting list for this event")

    db.delete(entry)
    db.commit()
    return entry


def remove_waiting_list_entry(db, event_id, entry_id):
    entry = db.query(WaitingList).filter(
        WaitingList.id == entry_id,
        WaitingList.event_id == event_id
    ).first()
    if not entry:
        raise NotFound("Waiting list entry not found")
    db.delete(entry)
    db.commit()
    return entry


def promote_from_waiting_list(db, event_id, entry_id, user_id=None):
    """
    Move a waiting-list entry into the registrations in one transaction.

    The entry is deleted, the registration created (or a soft-deleted match
    reactivated) and one MOVED_FROM_WAITLIST row logged. Capacity is not
    checked so moderators can overbook.

    Returns:
        tuple: (event, registration, payment_type)
    """
    event = get_event_or_404(db, event_id)
    entry = db.query(WaitingList).filter(
        WaitingList.id == entry_id,
        WaitingList.event_id == event.id
    ).first()
    if not entry:
        raise NotFound("Waiting list entry not found")

    person = normalize_person(entry.first_name, entry.last_name, entry.email, entry.phone_number)
    if find_active_registration(db, event.id, person):
        raise _duplicate_registration_error(person)

    registration = find_deleted_registration(db, event.id, person)
    if registration:
        registration.deleted = False
        registration.attended = False
        registration.phone_number = person['phone_number']
        registration.payment_type = entry.payment_type
        registration.created_at = datetime.utcnow()
    else:
        registration = Registration(event_id=event.id, payment_type=entry.payment_type, **person)
        db.add(registration)

    _flush(db, person)
    record_history(db, event.id, RegistrationAction.MOVED_FROM_WAITLIST,
                   registration=registration, waiting_list_entry=entry,
                   user_id=user_id, event_title=event.title)
    db.delete(entry)
    _commit(db, person)
    logger.info(f"Waiting list entry {entry_id} promoted to registration {registration.id}")
    return event, registration, registration.payment_type


def admin_add_registration(db, event_id, first_name, last_name, email, phone_number=None,
                           payment_type=PaymentType.CASH, user_id=None):
    """
    Moderator adds a participant directly, ignoring capacity.
    A soft-deleted match is reactivated instead of duplicated.

    Returns:
        tuple: (registration, action)
    """
    validate_payment_type(payment_type)
    person = normalize_person(first_name, last_name, email, phone_number)
    _validate_person(person)

    event = get_event_or_404(db, event_id)
    if find_active_registration(db, event.id, person):
        raise _duplicate_registration_error(person)

    registration, action = _activate_registration(db, event, person, payment_type, user_id)
    _commit(db, person)
    return registration, action


def duplicate_registration(db, registration_id, target_event_id, user_id=None):
    """Copy an existing registration into another event"""
    source = db.query(Registration).filter(Registration.id == registration_id).first()
    if not source:
        raise NotFound("Registration not found")
    return admin_add_registration(
        db, target_event_id,
        first_name=source.first_name,
        last_name=source.last_name,
        email=source.email,
        phone_number=source.phone_number,
        payment_type=source.payment_type,
        user_id=user_id
    )


def get_registration_or_404(db, registration_id) -> Registration:
    registration = db.query(Registration).filter(Registration.id == registration_id).first()
    if not registration:
        raise NotFound("Registration not found")
    return registration


def update_registration(db, registration_id, data: dict) -> Registration:
    """Edit a registration's personal details and payment type"""
    registration = get_registration_or_404(db, registration_id)

    if 'paymentType' in data:
        registration.payment_type = validate_payment_type(data['paymentType'])

    person = normalize_person(
        data.get('firstName', registration.first_name),
        data.get('lastName', registration.last_name),
        data.get('email', registration.email),
        data.get('phoneNumber', registration.phone_number)
    )
    _validate_person(person)

    if not registration.deleted:
        clash = find_active_registration(db, registration.event_id, person)
        if clash and clash.id != registration.id:
            raise _duplicate_registration_error(person)

    for field, value in person.items():
        setattr(registration, field, value)

    _commit(db, person)
    db.refresh(registration)
    return registration


def delete_registration_by_moderator(db, registration_id, user_id=None) -> Registration:
    registration = get_registration_or_404(db, registration_id)
    if registration.deleted:
        raise NotFound("Registration not found")
    event = get_event_or_404(db, registration.event_id)
    _soft_delete(db, event, registration, RegistrationAction.DELETED_BY_MODERATOR, user_id)
    db.commit()
    logger.info(f"Registration {registration.id} deleted by moderator")
    return registration


def set_attendance(db, registration_id, attended: bool) -> Registration:
    registration = get_registration_or_404(db, registration_id)
    registration.attended = bool(attended)
    db.commit()
    db.refresh(registration)
    return registration
