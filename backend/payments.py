"""
GameOn Payments
Bank accounts, variable symbols, bank-transfer QR codes and payment status updates.
"""

import base64
import os
import random
import logging
from io import BytesIO
from datetime import datetime

import qrcode

from database import Payment

logger = logging.getLogger(__name__)

PAYMENT_CURRENCY = os.environ.get('PAYMENT_CURRENCY', 'CZK')
BANK_ACCOUNT = os.environ.get('BANK_ACCOUNT')

# Message shown in the recipient's bank statement
PAYMENT_MESSAGE_PREFIX = 'Game On Baby!'

ADMIN_QR_DATA = 'Generated by admin'

# Attempts at finding an unused admin variable symbol before widening it
VARIABLE_SYMBOL_ATTEMPTS = 10

BANK_ACCOUNTS = [
    {
        'id': 'main',
        'name': 'Main Account',
        'accountNumber': 'CZ9130300000001628400020',
        'description': 'Main event account',
        'isDefault': True,
    },
    {
        'id': 'vitek',
        'name': 'Vitek Account',
        'accountNumber': 'CZ5220100000002801494468',
        'description': "Vitek's account",
        'isDefault': False,
    },
]


def get_all_bank_accounts():
    return list(BANK_ACCOUNTS)


def get_bank_account_by_id(account_id):
    for account in BANK_ACCOUNTS:
        if account['id'] == account_id:
            return account
    return None


def get_default_bank_account():
    for account in BANK_ACCOUNTS:
        if account.get('isDefault'):
            return account
    if not BANK_ACCOUNTS:
        raise RuntimeError("No bank accounts configured")
    return BANK_ACCOUNTS[0]


def resolve_account_number(bank_account_id=None) -> str:
    """Account number for an event: its chosen account, BANK_ACCOUNT, or the default"""
    if bank_account_id:
        account = get_bank_account_by_id(bank_account_id)
        if not account:
            raise ValueError(f"Bank account with ID '{bank_account_id}' not found")
        return account['accountNumber']
    return BANK_ACCOUNT or get_default_bank_account()['accountNumber']


def generate_variable_symbol(prefix: str = '', digits: int = 4) -> str:
    """Prefix followed by a zero-padded random number, e.g. '2510190042' or 'VS0042'"""
    return f"{prefix}{random.randint(0, 10 ** digits - 1):0{digits}d}"


def build_spd_payload(account_number: str, amount: float, first_name: str,
                      variable_symbol: str, when: datetime = None, currency: str = None) -> str:
    """Build a Czech short payment descriptor (SPD) string for a bank-transfer QR code"""
    when = when or datetime.now()
    currency = currency or PAYMENT_CURRENCY
    message = f"{PAYMENT_MESSAGE_PREFIX} ({when.strftime('%d. %m. %y')}) - {first_name} "
    return (
        "SPD*1.0"
        f"*ACC:{account_number}"
        f"*AM:{float(amount):.2f}"
        f"*CC:{currency}"
        f"*MSG:{message}"
        f"*X-VS:{variable_symbol}"
    )


def qr_data_url(payload: str) -> str:
    """Render a payload as a base64 PNG data URL"""
    image = qrcode.make(payload)
    buffer = BytesIO()
    image.save(buffer, format='PNG')
    encoded = base64.b64encode(buffer.getvalue()).decode('ascii')
    return f"data:image/png;base64,{encoded}"


def create_payment_qr(first_name: str, price: float, bank_account_id=None, when: datetime = None) -> str:
    """
    Generate the QR code a participant scans to pay for an event.

    Returns:
        str: PNG data URL encoding the SPD payload
    """
    when = when or datetime.now()
    variable_symbol = generate_variable_symbol(when.strftime('%y%m%d'))
    payload = build_spd_payload(
        resolve_account_number(bank_account_id),
        price,
        first_name,
        variable_symbol,
        when=when
    )
    return qr_data_url(payload)


def _unused_admin_variable_symbol(db) -> str:
    for _ in range(VARIABLE_SYMBOL_ATTEMPTS):
        candidate = generate_variable_symbol('VS')
        exists = db.query(Payment.id).filter(Payment.variable_symbol == candidate).first()
        if not exists:
            return candidate
    logger.warning("Admin variable symbol space crowded, using a wider symbol")
    return generate_variable_symbol('VS', digits=8)


def set_payment_status(db, registration, paid: bool) -> Payment:
    """
    Set a registration's paid flag, creating its Payment row when missing.

    Does not commit; the caller owns the transaction.
    """
    payment = registration.payment
    if payment is None:
        payment = Payment(
            registration_id=registration.id,
            variable_symbol=_unused_admin_variable_symbol(db),
            qr_data=ADMIN_QR_DATA,
            paid=bool(paid)
        )
        db.add(payment)
        registration.payment = payment
    else:
        payment.paid = bool(paid)
    return payment
