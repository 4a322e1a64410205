from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field
from marshmallow import Schema, fields, validate, EXCLUDE
from carwithdriver.models.vehicle_availability import VehicleAvailability, AvailabilityStatus


class VehicleAvailabilitySchema(SQLAlchemyAutoSchema):
    class Meta:
        model = VehicleAvailability
        load_instance = True
        include_fk = True

    id = auto_field(dump_only=True)
    vehicle_id = auto_field(dump_only=True)
    start_date = auto_field()
    end_date = auto_field()
    status = auto_field()
    note = auto_field()
    created_at = auto_field(dump_only=True)
    updated_at = auto_field(dump_only=True)


class AvailabilitySlotRequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    start_date = fields.Date(required=True)
    end_date = fields.Date(required=True)
    status = fields.String(load_default=AvailabilityStatus.AVAILABLE,
                           validate=validate.OneOf(AvailabilityStatus.ALL))
    note = fields.String(allow_none=True, validate=validate.Length(max=500))
