from datetime import datetime
from carwithdriver.extensions import db


class AvailabilityStatus:
    AVAILABLE = 'available'
    UNAVAILABLE = 'unavailable'

    ALL = [AVAILABLE, UNAVAILABLE]


class VehicleAvailability(db.Model):
    __tablename__ = 'vehicle_availability'

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicle.id', ondelete='CASCADE'), nullable=False, index=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=AvailabilityStatus.AVAILABLE)
    note = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.Index('ix_vehicle_availability_range', 'vehicle_id', 'start_date', 'end_date'),
    )

    def __repr__(self):
        return f'<VehicleAvailability {self.id}: Vehicle {self.vehicle_id} {self.status} {self.start_date}..{self.end_date}>'
