from carwithdriver.extensions import db
from sqlalchemy import false

class Vehicle(db.Model):
    __tablename__ = 'vehicle'
    id = db.Column(db.Integer, primary_key=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    model = db.Column(db.String(128), nullable=False)
    price_per_day = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String(32), default='approved', nullable=False)  # pending, approved, rejected
    is_deleted = db.Column(db.Boolean, default=False, nullable=False, server_default=false())

    driver = db.relationship('User', backref='vehicles', lazy=True)
    availability = db.relationship(
        'VehicleAvailability', backref='vehicle', lazy=True,
        cascade='all, delete-orphan', order_by='VehicleAvailability.start_date'
    )

    @classmethod
    def query_active(cls):
        """Query active (non-deleted) records only"""
        return cls.query.filter_by(is_deleted=False)
