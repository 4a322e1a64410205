from flask import Blueprint, request, jsonify
from carwithdriver.services.driver_earnings_service import DriverEarningsService
from carwithdriver.services.errors import ServiceError
from carwithdriver.schemas.driver_commission_schema import (
    DriverCommissionSchema,
    EarningsSummarySchema,
    PaymentSlipSchema,
    CommissionStatusSchema,
)
from carwithdriver.api.errors import service_error_response, GENERIC_ERROR
from carwithdriver.models.role import RoleName
import logging
from flask_security import roles_accepted, current_user
from carwithdriver.extensions import db

driver_earnings_bp = Blueprint('driver_earnings', __name__)

commission_schema = DriverCommissionSchema(session=db.session)
summary_schema = EarningsSummarySchema()
summary_schema_many = EarningsSummarySchema(many=True)
payment_slip_schema = PaymentSlipSchema()
status_schema = CommissionStatusSchema()

logger = logging.getLogger(__name__)


def _target_driver_id():
    """Drivers see their own statements; admins pick a driver with ?driver_id="""
    if current_user.has_role(RoleName.ADMIN):
        return request.args.get('driver_id', type=int) or current_user.id
    return current_user.id


@driver_earnings_bp.route('/driver/earnings', methods=['GET'])
@roles_accepted(RoleName.ADMIN, RoleName.DRIVER)
def get_earnings_summary():
    """
    Monthly statement.
    Query params: month (YYYY-MM, defaults to the current month)
    """
    try:
        summary = DriverEarningsService.summarize(_target_driver_id(), request.args.get('month'))
        return jsonify(summary_schema.dump(summary)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in get_earnings_summary: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@driver_earnings_bp.route('/driver/earnings/history', methods=['GET'])
@roles_accepted(RoleName.ADMIN, RoleName.DRIVER)
def get_earnings_history():
    try:
        history = DriverEarningsService.history(_target_driver_id(), limit=request.args.get('limit', type=int))
        return jsonify(summary_schema_many.dump(history)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in get_earnings_history: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@driver_earnings_bp.route('/driver/earnings/<int:commission_id>/payment-slip', methods=['POST'])
@roles_accepted(RoleName.DRIVER)
def upload_payment_slip(commission_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = payment_slip_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        record = DriverEarningsService.record_payment_slip(
            commission_id,
            data['payment_slip_url'],
            filename=data.get('filename'),
            driver_id=current_user.id,
        )
        return jsonify(commission_schema.dump(record)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in upload_payment_slip: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@driver_earnings_bp.route('/admin/driver-commissions/<int:commission_id>/status', methods=['PUT'])
@roles_accepted(RoleName.ADMIN)
def update_commission_status(commission_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = status_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        record = DriverEarningsService.set_status(commission_id, data['status'], data.get('admin_note'))
        return jsonify(commission_schema.dump(record)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in update_commission_status: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500
