from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field
from marshmallow import Schema, fields, validates, validate, ValidationError, EXCLUDE
from carwithdriver.models.booking import Booking


class BookingSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = Booking
        load_instance = True
        include_fk = True
        exclude = ('version', 'cancelled_at', 'cancellation_penalty', 'cancellation_refund')

    id = auto_field(dump_only=True)
    status = auto_field(dump_only=True)
    created_at = auto_field(dump_only=True)
    updated_at = auto_field(dump_only=True)

    # Commission fields are always derived, never accepted from clients
    commission_base_rate = auto_field(dump_only=True)
    commission_discount_id = auto_field(dump_only=True)
    commission_discount_label = auto_field(dump_only=True)
    commission_discount_rate = auto_field(dump_only=True)
    commission_rate = auto_field(dump_only=True)
    commission_amount = auto_field(dump_only=True)
    driver_earnings = auto_field(dump_only=True)

    is_from_offer = fields.Boolean(dump_only=True)
    cancellation = fields.Method('get_cancellation', dump_only=True)
    vehicle_model = fields.Method('get_vehicle_model', dump_only=True)

    def get_cancellation(self, obj):
        record = obj.cancellation
        if record is None:
            return None
        return {
            'cancelled_at': record['cancelled_at'].isoformat() if record['cancelled_at'] else None,
            'penalty_amount': record['penalty_amount'],
            'refund_amount': record['refund_amount'],
        }

    def get_vehicle_model(self, obj):
        return obj.vehicle.model if obj.vehicle else None


class BookingCreateSchema(Schema):
    """Direct booking request from a traveller"""
    class Meta:
        unknown = EXCLUDE

    traveler_id = fields.Integer(allow_none=True)
    vehicle_id = fields.Integer(required=True)
    start_date = fields.Date(required=True)
    end_date = fields.Date(required=True)
    traveler_name = fields.String(required=True, validate=validate.Length(min=1, max=120))
    traveler_email = fields.Email(required=True)
    traveler_phone = fields.String(required=True, validate=validate.Length(min=1, max=40))
    price_per_day = fields.Float(allow_none=True, validate=validate.Range(min=0))
    flight_number = fields.String(allow_none=True)
    arrival_time = fields.String(allow_none=True)
    departure_time = fields.String(allow_none=True)
    start_point = fields.String(allow_none=True)
    end_point = fields.String(allow_none=True)
    special_requests = fields.String(allow_none=True)


class OfferSchema(Schema):
    """Payload of an accepted chat offer"""
    class Meta:
        unknown = EXCLUDE

    offer_id = fields.Integer(required=True)
    conversation_id = fields.Integer(allow_none=True)
    vehicle_id = fields.Integer(required=True)
    start_date = fields.Date(required=True)
    end_date = fields.Date(required=True)
    total_price = fields.Float(required=True, validate=validate.Range(min=0))
    total_kms = fields.Float(allow_none=True)
    price_per_extra_km = fields.Float(allow_none=True)


class OfferBookingSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    offer = fields.Nested(OfferSchema, required=True)
    traveler_id = fields.Integer(required=True)
    traveler_name = fields.String(required=True, validate=validate.Length(min=1, max=120))
    traveler_email = fields.Email(required=True)
    traveler_phone = fields.String(required=True, validate=validate.Length(min=1, max=40))
    flight_number = fields.String(allow_none=True)
    arrival_time = fields.String(allow_none=True)
    departure_time = fields.String(allow_none=True)
    start_point = fields.String(allow_none=True)
    end_point = fields.String(allow_none=True)
    special_requests = fields.String(allow_none=True)


class BookingUpdateSchema(Schema):
    """Traveller edits before the trip starts"""
    class Meta:
        unknown = EXCLUDE

    start_date = fields.Date(allow_none=True)
    end_date = fields.Date(allow_none=True)
    flight_number = fields.String(allow_none=True)
    arrival_time = fields.String(allow_none=True)
    departure_time = fields.String(allow_none=True)
    start_point = fields.String(allow_none=True)
    end_point = fields.String(allow_none=True)
    special_requests = fields.String(allow_none=True)


class BookingResponseSchema(Schema):
    action = fields.String(required=True)

    @validates('action')
    def validate_action(self, value, **kwargs):
        """Drivers either accept or reject a pending booking"""
        if not isinstance(value, str) or value.strip().lower() not in ('accept', 'reject'):
            raise ValidationError("Action must be one of: accept, reject")
        return value
