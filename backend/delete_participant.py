#!/usr/bin/env python3
"""
Delete participants directly from the database
Registrations are removed for good together with their payment; use the admin
API instead when the removal should show up in the registration history.

Usage:
    python delete_participant.py --list [--event 12]
    python delete_participant.py --id 42
    python delete_participant.py --email someone@example.com --event 12
"""

import sys
import os
import argparse
import logging

from dotenv import load_dotenv
load_dotenv()

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy import func
from database import SessionLocal, Registration

logging.basicConfig(level=logging.INFO, format='%(message)s')
logger = logging.getLogger(__name__)


def list_participants(db, event_id=None):
    query = db.query(Registration)
    if event_id is not None:
        query = query.filter(Registration.event_id == event_id)
    participants = query.order_by(Registration.event_id.asc(), Registration.created_at.asc()).all()

    if not participants:
        logger.info("No participants found.")
        return

    logger.info("Participants:")
    for index, p in enumerate(participants, start=1):
        if p.payment is None:
            payment = 'No payment record'
        else:
            payment = 'Paid' if p.payment.paid else 'Not Paid'
        logger.info(f"{index}. ID: {p.id}{' (deleted)' if p.deleted else ''}")
        logger.info(f"   Name: {p.first_name} {p.last_name}".rstrip())
        logger.info(f"   Email: {p.email}")
        logger.info(f"   Event: {p.event.title if p.event else 'Unknown'}")
        logger.info(f"   Payment: {payment}")
        logger.info("---")


def _delete(db, registration):
    # Payment goes with it through the cascade
    db.delete(registration)
    db.commit()
    logger.info(f"Participant deleted: {registration.first_name} {registration.last_name} ({registration.email})")


def delete_by_id(db, registration_id):
    registration = db.query(Registration).filter(Registration.id == registration_id).first()
    if not registration:
        logger.info(f"No participant found with ID: {registration_id}")
        return False
    _delete(db, registration)
    return True


def delete_by_email(db, email, event_id):
    registrations = db.query(Registration).filter(
        Registration.event_id == event_id,
        func.lower(Registration.email) == email.strip().lower()
    ).all()
    if not registrations:
        logger.info(f"No participant found with email {email} for event {event_id}")
        return False
    for registration in registrations:
        _delete(db, registration)
    return True


def main():
    parser = argparse.ArgumentParser(description='Delete GameOn participants')
    parser.add_argument('--id', type=int, help='Delete participant by ID')
    parser.add_argument('--email', help='Delete participant by email (requires --event)')
    parser.add_argument('--event', type=int, help='Event ID')
    parser.add_argument('--list', action='store_true', help='List participants')
    args = parser.parse_args()

    if args.email and args.event is None:
        parser.error('--event is required when using --email')
    if not (args.list or args.id or args.email):
        parser.print_help()
        return 1

    db = SessionLocal()
    try:
        if args.list:
            list_participants(db, args.event)
            return 0
        if args.id:
            return 0 if delete_by_id(db, args.id) else 1
        return 0 if delete_by_email(db, args.email, args.event) else 1
    except Exception as e:
        logger.error(f"Error deleting participant: {e}", exc_info=True)
        db.rollback()
        return 1
    finally:
        db.close()


if __name__ == '__main__':
    sys.exit(main())
