from datetime import datetime
from carwithdriver.extensions import db


class CommissionStatus:
    PENDING = 'pending'
    SUBMITTED = 'submitted'
    APPROVED = 'approved'

    ALL = [PENDING, SUBMITTED, APPROVED]


class DriverCommission(db.Model):
    __tablename__ = 'driver_commission'

    id = db.Column(db.Integer, primary_key=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)

    # Totals are recomputed on every summary request
    booking_count = db.Column(db.Integer, nullable=False, default=0)
    booking_ids = db.Column(db.JSON, nullable=False, default=list)
    total_gross = db.Column(db.Float, nullable=False, default=0.0)
    total_commission = db.Column(db.Float, nullable=False, default=0.0)
    total_driver_earnings = db.Column(db.Float, nullable=False, default=0.0)
    commission_rate = db.Column(db.Float, nullable=False, default=0.08)
    last_recalculated_at = db.Column(db.DateTime, nullable=True)

    # Payment tracking survives recomputation
    status = db.Column(db.String(16), nullable=False, default=CommissionStatus.PENDING, index=True)
    payment_slip_url = db.Column(db.String(512), nullable=True)
    payment_slip_filename = db.Column(db.String(255), nullable=True)
    payment_slip_uploaded_at = db.Column(db.DateTime, nullable=True)
    admin_note = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    driver = db.relationship('User', backref='commissions', lazy=True)

    __table_args__ = (db.UniqueConstraint('driver_id', 'year', 'month', name='_driver_commission_period_uc'),)

    @property
    def period_value(self):
        return f"{self.year}-{self.month:02d}"

    def __repr__(self):
        return f'<DriverCommission {self.id}: Driver {self.driver_id} {self.period_value} {self.status}>'
