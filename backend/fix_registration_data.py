#!/usr/bin/env python3
"""
Repair registration data
Normalises payment type and history action values to their upper-case form,
removes payments whose registration is gone, fills in missing variable
symbols and reports active duplicates that would block the unique index.

Usage:
    python fix_registration_data.py [--dry-run]
"""

import sys
import os
import argparse
import logging

from dotenv import load_dotenv
load_dotenv()

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy import func, select
from database import (
    SessionLocal, Registration, WaitingList, Payment, RegistrationHistory,
    PaymentType, RegistrationAction
)
from payments import _unused_admin_variable_symbol

logging.basicConfig(level=logging.INFO, format='%(message)s')
logger = logging.getLogger(__name__)


def _normalize_payment_types(db, model) -> int:
    fixed = 0
    for row in db.query(model).all():
        value = (row.payment_type or '').strip().upper()
        if value not in PaymentType.ALL:
            logger.warning(f"{model.__tablename__} {row.id}: unknown payment type '{row.payment_type}', using CASH")
            value = PaymentType.CASH
        if value != row.payment_type:
            row.payment_type = value
            fixed += 1
    return fixed


def _normalize_actions(db) -> int:
    fixed = 0
    for row in db.query(RegistrationHistory).all():
        value = (row.action_type or '').strip().upper()
        if value != row.action_type and value in RegistrationAction.ALL:
            row.action_type = value
            fixed += 1
        elif value not in RegistrationAction.ALL:
            logger.warning(f"History {row.id}: unknown action '{row.action_type}' left as is")
    return fixed


def _delete_orphaned_payments(db) -> int:
    orphans = db.query(Payment).filter(~Payment.registration_id.in_(select(Registration.id))).all()
    for payment in orphans:
        logger.info(f"Deleting orphaned payment {payment.id}")
        db.delete(payment)
    return len(orphans)


def _fill_variable_symbols(db) -> int:
    missing = db.query(Payment).filter(
        (Payment.variable_symbol == None) | (Payment.variable_symbol == '')  # noqa: E711
    ).all()
    for payment in missing:
        payment.variable_symbol = _unused_admin_variable_symbol(db)
        logger.info(f"Payment {payment.id}: assigned variable symbol {payment.variable_symbol}")
    return len(missing)


def find_active_duplicates(db) -> list:
    """(event_id, email, first_name, last_name, count) groups with more than one active row"""
    return db.query(
        Registration.event_id,
        func.lower(Registration.email),
        func.lower(Registration.first_name),
        func.lower(Registration.last_name),
        func.count(Registration.id)
    ).filter(
        Registration.deleted == False  # noqa: E712
    ).group_by(
        Registration.event_id,
        func.lower(Registration.email),
        func.lower(Registration.first_name),
        func.lower(Registration.last_name)
    ).having(func.count(Registration.id) > 1).all()


def fix_registration_data(db, dry_run: bool = False) -> dict:
    """Apply all repairs in one transaction and return what was changed"""
    summary = {
        'registrationPaymentTypes': _normalize_payment_types(db, Registration),
        'waitingListPaymentTypes': _normalize_payment_types(db, WaitingList),
        'historyActions': _normalize_actions(db),
        'orphanedPayments': _delete_orphaned_payments(db),
        'variableSymbols': _fill_variable_symbols(db),
    }

    duplicates = find_active_duplicates(db)
    for event_id, email, first_name, last_name, count in duplicates:
        logger.warning(f"Event {event_id}: {count} active registrations for {first_name} {last_name} <{email}>")
    summary['activeDuplicates'] = len(duplicates)

    if dry_run:
        db.rollback()
    else:
        db.commit()
    return summary


def main():
    parser = argparse.ArgumentParser(description='Repair GameOn registration data')
    parser.add_argument('--dry-run', action='store_true', help='Report changes without saving them')
    args = parser.parse_args()

    logger.info("Starting database cleanup...")
    db = SessionLocal()
    try:
        summary = fix_registration_data(db, dry_run=args.dry_run)
        for key, value in summary.items():
            logger.info(f"  {key}: {value}")
        logger.info("Dry run, nothing saved." if args.dry_run else "Database cleanup completed.")
        return 0
    except Exception as e:
        logger.error(f"Error during cleanup: {e}", exc_info=True)
        db.rollback()
        return 1
    finally:
        db.close()


if __name__ == '__main__':
    sys.exit(main())
