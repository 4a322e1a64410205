from datetime import datetime
from carwithdriver.extensions import db
from carwithdriver.utils.timezone_utils import today


class DiscountStatus:
    """Derived discount status; computed at read time, never stored"""
    DISABLED = 'disabled'
    SCHEDULED = 'scheduled'
    EXPIRED = 'expired'
    ACTIVE = 'active'


class CommissionDiscount(db.Model):
    __tablename__ = 'commission_discount'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False)
    description = db.Column(db.String(1000), nullable=True)
    discount_percent = db.Column(db.Float, nullable=False)  # 0-8, percentage points off the base rate
    start_date = db.Column(db.Date, nullable=False, index=True)
    end_date = db.Column(db.Date, nullable=False, index=True)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.Index('ix_commission_discount_range', 'start_date', 'end_date'),
    )

    def status_on(self, reference):
        """Derived status of this discount as seen on the given date"""
        if not self.active:
            return DiscountStatus.DISABLED
        if reference < self.start_date:
            return DiscountStatus.SCHEDULED
        if reference > self.end_date:
            return DiscountStatus.EXPIRED
        return DiscountStatus.ACTIVE

    @property
    def status(self):
        return self.status_on(today())

    @property
    def discount_rate(self):
        return round((self.discount_percent or 0) / 100.0, 6)

    def __repr__(self):
        return f'<CommissionDiscount {self.id}: {self.name} {self.discount_percent}% {self.start_date}..{self.end_date}>'
