from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field
from marshmallow import Schema, fields, validate, EXCLUDE
from carwithdriver.models.driver_commission import DriverCommission, CommissionStatus
from carwithdriver.schemas.booking_schema import BookingSchema
from carwithdriver.schemas.commission_discount_schema import CommissionDiscountSchema


class DriverCommissionSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = DriverCommission
        load_instance = True
        include_fk = True

    id = auto_field(dump_only=True)
    driver_id = auto_field(dump_only=True)
    year = auto_field(dump_only=True)
    month = auto_field(dump_only=True)
    booking_count = auto_field(dump_only=True)
    booking_ids = auto_field(dump_only=True)
    total_gross = auto_field(dump_only=True)
    total_commission = auto_field(dump_only=True)
    total_driver_earnings = auto_field(dump_only=True)
    commission_rate = auto_field(dump_only=True)
    last_recalculated_at = auto_field(dump_only=True)
    status = auto_field()
    payment_slip_url = auto_field()
    payment_slip_filename = auto_field()
    payment_slip_uploaded_at = auto_field(dump_only=True)
    admin_note = auto_field()
    period = fields.String(attribute='period_value', dump_only=True)


class EarningsPeriodSchema(Schema):
    value = fields.String()
    label = fields.String()
    year = fields.Integer()
    month = fields.Integer()
    period_start = fields.Date()
    period_end = fields.Date()
    last_day = fields.Date()
    due_date = fields.Date()


class EarningsSummarySchema(Schema):
    """Monthly statement as returned to the driver"""
    period = fields.Nested(EarningsPeriodSchema)
    totals = fields.Dict()
    commission = fields.Nested(DriverCommissionSchema)
    bookings = fields.List(fields.Nested(BookingSchema(only=(
        'id', 'vehicle_id', 'vehicle_model', 'traveler_name', 'start_date', 'end_date',
        'total_days', 'total_price', 'commission_rate', 'commission_amount',
        'driver_earnings', 'commission_discount_label',
    ))))
    discount = fields.Nested(CommissionDiscountSchema, allow_none=True)
    bank_details = fields.Dict()


class PaymentSlipSchema(Schema):
    """The file itself is uploaded to external storage; only its URL arrives here"""
    class Meta:
        unknown = EXCLUDE

    payment_slip_url = fields.String(required=True, validate=validate.Length(min=1, max=512))
    filename = fields.String(allow_none=True)


class CommissionStatusSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    status = fields.String(required=True, validate=validate.OneOf(CommissionStatus.ALL))
    admin_note = fields.String(allow_none=True, validate=validate.Length(max=500))
