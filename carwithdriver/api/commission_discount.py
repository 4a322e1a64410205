from flask import Blueprint, request, jsonify
from carwithdriver.services.commission_discount_service import CommissionDiscountService
from carwithdriver.services.errors import ServiceError
from carwithdriver.schemas.commission_discount_schema import (
    CommissionDiscountSchema,
    CommissionDiscountRequestSchema,
)
from carwithdriver.api.errors import service_error_response, GENERIC_ERROR
from carwithdriver.models.role import RoleName
import logging
from flask_security import roles_accepted, current_user
from carwithdriver.extensions import db

commission_discount_bp = Blueprint('commission_discount', __name__)

schema = CommissionDiscountSchema(session=db.session)
schema_many = CommissionDiscountSchema(many=True, session=db.session)
request_schema = CommissionDiscountRequestSchema()

logger = logging.getLogger(__name__)


def _sweep_payload(discount_json, result):
    return {
        'discount': discount_json,
        'recalculatedBookings': result['recalculated_bookings'],
        'failedBookings': result['failed_bookings'],
    }


@commission_discount_bp.route('/admin/commission-discounts', methods=['GET'])
@roles_accepted(RoleName.ADMIN)
def list_commission_discounts():
    try:
        discounts = CommissionDiscountService.list_discounts()
        return jsonify(schema_many.dump(discounts)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in list_commission_discounts: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@commission_discount_bp.route('/admin/commission-discounts', methods=['POST'])
@roles_accepted(RoleName.ADMIN)
def create_commission_discount():
    try:
        data = request.get_json(silent=True) or {}
        errors = request_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        result = CommissionDiscountService.create_discount(data, actor_id=current_user.id)
        return jsonify(_sweep_payload(schema.dump(result['discount']), result)), 201
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in create_commission_discount: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@commission_discount_bp.route('/admin/commission-discounts/<int:discount_id>', methods=['PUT'])
@roles_accepted(RoleName.ADMIN)
def update_commission_discount(discount_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = request_schema.validate(data, partial=True)
        if errors:
            return jsonify(errors), 400
        result = CommissionDiscountService.update_discount(discount_id, data, actor_id=current_user.id)
        return jsonify(_sweep_payload(schema.dump(result['discount']), result)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in update_commission_discount: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@commission_discount_bp.route('/admin/commission-discounts/<int:discount_id>', methods=['DELETE'])
@roles_accepted(RoleName.ADMIN)
def delete_commission_discount(discount_id):
    try:
        # Serialised up front; the row is gone once the service returns
        discount_json = schema.dump(CommissionDiscountService.get_discount(discount_id))
        result = CommissionDiscountService.delete_discount(discount_id)
        return jsonify(_sweep_payload(discount_json, result)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in delete_commission_discount: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500
