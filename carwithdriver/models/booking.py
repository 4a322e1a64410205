from datetime import datetime
from carwithdriver.extensions import db


class BookingStatus:
    """Booking status constants"""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    REJECTED = 'rejected'

    ALL = [PENDING, CONFIRMED, CANCELLED, REJECTED]
    # Money fields may still be re-derived while a booking is in one of these
    LIVE = [PENDING, CONFIRMED]


DEFAULT_PAYMENT_NOTE = 'Payment will be collected by your driver on the first day of the trip.'


class Booking(db.Model):
    __tablename__ = 'booking'

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicle.id'), nullable=False, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    traveler_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)

    # Traveller contact snapshot
    traveler_name = db.Column(db.String(120), nullable=False)
    traveler_email = db.Column(db.String(160), nullable=False)
    traveler_phone = db.Column(db.String(40), nullable=False)

    start_date = db.Column(db.Date, nullable=False, index=True)
    end_date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=BookingStatus.PENDING, index=True)

    # Ancillary trip details, editable by the traveller before the trip starts
    flight_number = db.Column(db.String(40), nullable=True)
    arrival_time = db.Column(db.String(80), nullable=True)
    departure_time = db.Column(db.String(80), nullable=True)
    start_point = db.Column(db.String(200), nullable=True)
    end_point = db.Column(db.String(200), nullable=True)
    special_requests = db.Column(db.String(1000), nullable=True)

    # Price terms
    total_days = db.Column(db.Integer, nullable=False, default=1)
    price_per_day = db.Column(db.Float, nullable=False, default=0.0)
    total_price = db.Column(db.Float, nullable=False, default=0.0)
    offer_id = db.Column(db.Integer, nullable=True, index=True)
    conversation_id = db.Column(db.Integer, nullable=True)
    total_kms = db.Column(db.Float, nullable=True)
    price_per_extra_km = db.Column(db.Float, nullable=True)

    # Commission, derived by the pricing function
    commission_base_rate = db.Column(db.Float, nullable=False)
    # Snapshot of the discount that priced the booking; kept after the discount is deleted
    commission_discount_id = db.Column(db.Integer, nullable=True, index=True)
    commission_discount_label = db.Column(db.String(160), nullable=True)
    commission_discount_rate = db.Column(db.Float, nullable=False, default=0.0)
    commission_rate = db.Column(db.Float, nullable=False)
    commission_amount = db.Column(db.Float, nullable=False, default=0.0)
    driver_earnings = db.Column(db.Float, nullable=False, default=0.0)
    payment_note = db.Column(db.String(255), nullable=True, default=DEFAULT_PAYMENT_NOTE)

    # Cancellation record
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancellation_penalty = db.Column(db.Float, nullable=True)
    cancellation_refund = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    version = db.Column(db.Integer, nullable=False)

    vehicle = db.relationship('Vehicle', backref='bookings', lazy=True)
    driver = db.relationship('User', foreign_keys=[driver_id], lazy=True)
    traveler = db.relationship('User', foreign_keys=[traveler_id], lazy=True)

    # Every UPDATE is a compare-and-set on version; a concurrent writer raises StaleDataError
    __mapper_args__ = {'version_id_col': version}

    __table_args__ = (
        db.Index('ix_booking_vehicle_range', 'vehicle_id', 'start_date', 'end_date'),
    )

    @property
    def is_from_offer(self):
        return self.offer_id is not None

    def has_started(self, today):
        return self.start_date <= today

    def is_completed(self, today):
        return self.end_date < today

    @property
    def cancellation(self):
        if self.cancelled_at is None:
            return None
        return {
            'cancelled_at': self.cancelled_at,
            'penalty_amount': self.cancellation_penalty,
            'refund_amount': self.cancellation_refund,
        }

    def __repr__(self):
        return f'<Booking {self.id}: Vehicle {self.vehicle_id} {self.status} {self.start_date}..{self.end_date}>'
