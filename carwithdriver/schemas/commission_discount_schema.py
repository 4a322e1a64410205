from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field
from marshmallow import Schema, fields, validates_schema, ValidationError, EXCLUDE
from carwithdriver.models.commission_discount import CommissionDiscount


class CommissionDiscountSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = CommissionDiscount
        load_instance = True
        include_fk = True

    id = auto_field(dump_only=True)
    name = auto_field()
    description = auto_field()
    discount_percent = auto_field()
    start_date = auto_field()
    end_date = auto_field()
    active = auto_field()
    created_by = auto_field(dump_only=True)
    updated_by = auto_field(dump_only=True)
    created_at = auto_field(dump_only=True)
    updated_at = auto_field(dump_only=True)

    # Derived at read time from the active flag and today's date
    status = fields.String(dump_only=True)
    discount_rate = fields.Float(dump_only=True)


class CommissionDiscountRequestSchema(Schema):
    """Create/update payload; the percent ceiling is enforced by the service"""
    class Meta:
        unknown = EXCLUDE

    name = fields.String(required=True)
    description = fields.String(allow_none=True)
    discount_percent = fields.Float(required=True)
    start_date = fields.Date(required=True)
    end_date = fields.Date(required=True)
    active = fields.Boolean(allow_none=True)

    @validates_schema
    def validate_window(self, data, **kwargs):
        start, end = data.get('start_date'), data.get('end_date')
        if start and end and end < start:
            raise ValidationError("End date must be on or after the start date.", 'end_date')
