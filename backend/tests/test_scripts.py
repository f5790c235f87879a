"""
Tests for the maintenance scripts.
"""
import io

from database import Registration, Payment, User, UserRole
from create_admin import create_admin
from export_database import export_database, sql_literal
from fix_registration_data import fix_registration_data


def test_fix_registration_data(db, make_event):
    event = make_event()
    registration = Registration(event_id=event.id, first_name='Alice', email='alice@example.com',
                                payment_type='qr ')
    odd = Registration(event_id=event.id, first_name='Bob', email='bob@example.com', payment_type='bitcoin')
    db.add_all([registration, odd])
    db.flush()
    db.add(Payment(registration_id=registration.id, variable_symbol='', paid=True))
    db.commit()

    summary = fix_registration_data(db)

    db.expire_all()
    assert summary['registrationPaymentTypes'] == 2
    assert summary['variableSymbols'] == 1
    assert summary['activeDuplicates'] == 0
    assert db.get(Registration, registration.id).payment_type == 'QR'
    assert db.get(Registration, odd.id).payment_type == 'CASH'
    assert db.query(Payment).one().variable_symbol.startswith('VS')


def test_fix_registration_data_dry_run_saves_nothing(db, make_event):
    event = make_event()
    db.add(Registration(event_id=event.id, first_name='Alice', email='alice@example.com', payment_type='card'))
    db.commit()

    summary = fix_registration_data(db, dry_run=True)

    db.expire_all()
    assert summary['registrationPaymentTypes'] == 1
    assert db.query(Registration).one().payment_type == 'card'


def test_sql_literal():
    assert sql_literal(None) == 'NULL'
    assert sql_literal(True) == 'TRUE'
    assert sql_literal(12) == '12'
    assert sql_literal("O'Brien") == "'O''Brien'"


def test_export_database(make_event):
    make_event(title='Catan night')
    out = io.StringIO()

    total = export_database(out)

    dump = out.getvalue()
    assert total == 1
    assert 'INSERT INTO "events"' in dump
    assert "'Catan night'" in dump
    assert dump.index('-- users') >= 0


def test_create_admin_promotes_existing_user(db):
    db.add(User(email='boss@example.com', role=UserRole.USER))
    db.commit()

    assert create_admin('Boss@Example.com') is True

    db.expire_all()
    assert db.query(User).filter(User.email == 'boss@example.com').one().role == UserRole.ADMIN


def test_create_admin_rejects_invalid_email(db):
    assert create_admin('not-an-email') is False
    assert db.query(User).count() == 0
