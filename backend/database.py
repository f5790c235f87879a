"""
GameOn Database Models and Connection
Events, registrations, waiting list, payments, history, no-shows and users
"""

from sqlalchemy import (
    create_engine, event, text, Column, Integer, String, Boolean, DateTime, Text, Float,
    ForeignKey, Index, func
)
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, relationship
from datetime import datetime
import os
import logging

logger = logging.getLogger(__name__)

# Database configuration
DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///gameon.db')
Base = declarative_base()

# Create engine
engine = create_engine(DATABASE_URL, connect_args={'check_same_thread': False} if 'sqlite' in DATABASE_URL else {})

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


if 'sqlite' in DATABASE_URL:
    @event.listens_for(engine, 'connect')
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection"""
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def _iso(value):
    return value.isoformat() if value else None


class PaymentType:
    """Accepted payment types for registrations and waiting-list entries"""
    CASH = 'CASH'
    CARD = 'CARD'
    QR = 'QR'

    ALL = (CASH, CARD, QR)
    # Types that get a bank-transfer QR code at registration time
    ONLINE = (CARD, QR)


class UserRole:
    USER = 'USER'
    REGULAR = 'REGULAR'
    MODERATOR = 'MODERATOR'
    ADMIN = 'ADMIN'

    ALL = (USER, REGULAR, MODERATOR, ADMIN)


class RegistrationAction:
    """Action types recorded in the registration history log"""
    REGISTERED = 'REGISTERED'
    UNREGISTERED = 'UNREGISTERED'
    REACTIVATED = 'REACTIVATED'
    ADDED_TO_WAITLIST = 'ADDED_TO_WAITLIST'
    MOVED_TO_WAITLIST = 'MOVED_TO_WAITLIST'
    MOVED_FROM_WAITLIST = 'MOVED_FROM_WAITLIST'
    DELETED_BY_MODERATOR = 'DELETED_BY_MODERATOR'
    EVENT_CREATED = 'EVENT_CREATED'
    EVENT_DELETED = 'EVENT_DELETED'
    EVENT_UPDATED = 'EVENT_UPDATED'

    ALL = (
        REGISTERED, UNREGISTERED, REACTIVATED, ADDED_TO_WAITLIST, MOVED_TO_WAITLIST,
        MOVED_FROM_WAITLIST, DELETED_BY_MODERATOR, EVENT_CREATED, EVENT_DELETED, EVENT_UPDATED
    )


class User(Base):
    """Application user linked to an identity at the external auth provider"""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, index=True)
    kinde_id = Column(String(255), unique=True, index=True, nullable=True)  # External identity id (token 'sub')
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(20), default=UserRole.USER, nullable=False)
    phone_number = Column(String(50), nullable=True)
    payment_preference = Column(String(20), default=PaymentType.CARD)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        """Convert user to dictionary"""
        return {
            'id': self.id,
            'kindeId': self.kinde_id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'phoneNumber': self.phone_number,
            'paymentPreference': self.payment_preference,
            'createdAt': _iso(self.created_at)
        }


class Event(Base):
    """Event that participants register for"""
    __tablename__ = 'events'

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, default=0, nullable=False)
    place = Column(String(255), nullable=True)
    capacity = Column(Integer, default=0, nullable=False)  # 0 = no limit
    from_time = Column('from', DateTime, nullable=False, index=True)
    to_time = Column('to', DateTime, nullable=False)
    visible = Column(Boolean, default=True, index=True)
    bank_account_id = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    registrations = relationship('Registration', back_populates='event', cascade='all, delete-orphan',
                                 passive_deletes=True)
    waiting_list = relationship('WaitingList', back_populates='event', cascade='all, delete-orphan',
                                passive_deletes=True)

    def to_dict(self, registration_count=None):
        """Convert event to dictionary"""
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'price': self.price,
            'place': self.place,
            'capacity': self.capacity,
            'from': _iso(self.from_time),
            'to': _iso(self.to_time),
            'visible': self.visible,
            'bankAccountId': self.bank_account_id,
            'created_at': _iso(self.created_at)
        }
        if registration_count is not None:
            data['registrationCount'] = registration_count
        return data


class Registration(Base):
    """
    A participant's registration for an event.
    Rows are soft-deleted (deleted=True) and reactivated instead of duplicated.
    """
    __tablename__ = 'registrations'

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False, default='')
    email = Column(String(255), nullable=False, index=True)
    phone_number = Column(String(50), nullable=True)
    payment_type = Column(String(20), nullable=False, default=PaymentType.CASH)
    attended = Column(Boolean, default=False, nullable=False)
    deleted = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    event = relationship('Event', back_populates='registrations')
    payment = relationship('Payment', back_populates='registration', uselist=False,
                           cascade='all, delete-orphan', passive_deletes=True)

    def to_dict(self, include_private=True):
        """Convert registration to dictionary"""
        data = {
            'id': self.id,
            'eventId': self.event_id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'createdAt': _iso(self.created_at)
        }
        if include_private:
            data.update({
                'email': self.email,
                'phoneNumber': self.phone_number,
                'paymentType': self.payment_type,
                'attended': self.attended,
                'deleted': self.deleted,
                'paid': bool(self.payment and self.payment.paid)
            })
        return data


class WaitingList(Base):
    """Holding queue entry for an event; hard-deleted on promotion or removal"""
    __tablename__ = 'waiting_list'

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False, default='')
    email = Column(String(255), nullable=False, index=True)
    phone_number = Column(String(50), nullable=True)
    payment_type = Column(String(20), nullable=False, default=PaymentType.CASH)
    created_at = Column(DateTime, default=datetime.utcnow)

    event = relationship('Event', back_populates='waiting_list')

    def to_dict(self, include_private=True):
        """Convert waiting list entry to dictionary"""
        data = {
            'id': self.id,
            'eventId': self.event_id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'createdAt': _iso(self.created_at)
        }
        if include_private:
            data.update({
                'email': self.email,
                'phoneNumber': self.phone_number,
                'paymentType': self.payment_type
            })
        return data


class Payment(Base):
    """Payment state of a registration, created the first time it is marked paid"""
    __tablename__ = 'payments'

    id = Column(Integer, primary_key=True, index=True)
    registration_id = Column(Integer, ForeignKey('registrations.id', ondelete='CASCADE'),
                             unique=True, nullable=False, index=True)
    paid = Column(Boolean, default=False, nullable=False)
    variable_symbol = Column(String(20), nullable=False, index=True)
    qr_data = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    registration = relationship('Registration', back_populates='payment')

    def to_dict(self):
        return {
            'id': self.id,
            'registrationId': self.registration_id,
            'paid': self.paid,
            'variableSymbol': self.variable_symbol,
            'createdAt': _iso(self.created_at)
        }


class RegistrationHistory(Base):
    """Append-only log of registration state transitions. Never updated or deleted."""
    __tablename__ = 'registration_history'

    id = Column(Integer, primary_key=True, index=True)
    # Plain columns, not foreign keys: the log outlives deleted events and registrations
    event_id = Column(Integer, nullable=False, index=True)
    registration_id = Column(Integer, nullable=True, index=True)
    waiting_list_id = Column(Integer, nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone_number = Column(String(50), nullable=True)
    action_type = Column(String(40), nullable=False, index=True)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)
    user_id = Column(String(255), nullable=True)  # Actor's external identity id
    event_title = Column(String(255), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'eventId': self.event_id,
            'registrationId': self.registration_id,
            'waitingListId': self.waiting_list_id,
            'firstName': self.first_name,
            'lastName': self.last_name or '',
            'email': self.email,
            'phoneNumber': self.phone_number or '',
            'actionType': self.action_type,
            'timestamp': _iso(self.timestamp),
            'userId': self.user_id,
            'eventTitle': self.event_title
        }


class NoShow(Base):
    """Registrant who neither attended nor paid, tracked for fee collection"""
    __tablename__ = 'no_shows'

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    event_id = Column(Integer, nullable=False, index=True)
    event_title = Column(String(255), nullable=False)
    event_date = Column(DateTime, nullable=False)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=True)
    fee_paid = Column(Boolean, default=False, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'eventId': self.event_id,
            'eventTitle': self.event_title,
            'eventDate': _iso(self.event_date),
            'firstName': self.first_name,
            'lastName': self.last_name,
            'feePaid': self.fee_paid,
            'paidAt': _iso(self.paid_at),
            'notes': self.notes,
            'createdAt': _iso(self.created_at)
        }


# At most one active registration per (event, email, first name, last name), compared
# case-insensitively like the duplicate checks in registration_service
Index(
    'uq_registrations_active_identity',
    Registration.event_id,
    func.lower(Registration.email),
    func.lower(Registration.first_name),
    func.lower(Registration.last_name),
    unique=True,
    postgresql_where=text('NOT deleted'),
    sqlite_where=text('deleted = 0'),
)

# At most one waiting-list entry per identity
Index(
    'uq_waiting_list_identity',
    WaitingList.event_id,
    func.lower(WaitingList.email),
    func.lower(WaitingList.first_name),
    func.lower(WaitingList.last_name),
    unique=True,
)


def init_db():
    """Initialize database - create all tables"""
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database initialized successfully")
    except Exception as e:
        # Handle race condition where multiple workers try to create tables simultaneously
        if "already exists" in str(e).lower() or "duplicate" in str(e).lower():
            logger.info("Database tables already exist (race condition handled)")
        else:
            raise


def get_db():
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


if __name__ == '__main__':
    # Initialize database when run directly
    init_db()
    print(f"Database created at: {DATABASE_URL}")
