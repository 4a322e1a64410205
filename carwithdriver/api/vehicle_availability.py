from flask import Blueprint, request, jsonify
from carwithdriver.services.vehicle_availability_service import VehicleAvailabilityService
from carwithdriver.services.errors import ServiceError
from carwithdriver.schemas.vehicle_availability_schema import (
    VehicleAvailabilitySchema,
    AvailabilitySlotRequestSchema,
)
from carwithdriver.api.errors import service_error_response, forbidden, GENERIC_ERROR
from carwithdriver.models.role import RoleName
import logging
from flask_security import roles_accepted, current_user
from carwithdriver.extensions import db

vehicle_availability_bp = Blueprint('vehicle_availability', __name__)

schema = VehicleAvailabilitySchema(session=db.session)
schema_many = VehicleAvailabilitySchema(many=True, session=db.session)
slot_request_schema = AvailabilitySlotRequestSchema()

logger = logging.getLogger(__name__)


def _owns_vehicle(vehicle_id):
    if current_user.has_role(RoleName.ADMIN):
        return True
    vehicle = VehicleAvailabilityService._get_vehicle(vehicle_id)
    return vehicle.driver_id == current_user.id


@vehicle_availability_bp.route('/vehicles/<int:vehicle_id>/availability', methods=['GET'])
@roles_accepted(RoleName.ADMIN, RoleName.DRIVER, RoleName.TRAVELER)
def list_availability(vehicle_id):
    try:
        slots = VehicleAvailabilityService.list_slots(vehicle_id)
        return jsonify(schema_many.dump(slots)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in list_availability: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@vehicle_availability_bp.route('/vehicles/<int:vehicle_id>/availability', methods=['POST'])
@roles_accepted(RoleName.ADMIN, RoleName.DRIVER)
def add_availability(vehicle_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = slot_request_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        if not _owns_vehicle(vehicle_id):
            return forbidden("You can only manage availability for your own vehicles.")
        slot = VehicleAvailabilityService.add_slot(
            vehicle_id,
            data['start_date'],
            data['end_date'],
            status=data.get('status') or 'available',
            note=data.get('note'),
        )
        return jsonify(schema.dump(slot)), 201
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in add_availability: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@vehicle_availability_bp.route('/vehicles/<int:vehicle_id>/availability/<int:slot_id>', methods=['PUT'])
@roles_accepted(RoleName.ADMIN, RoleName.DRIVER)
def update_availability(vehicle_id, slot_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = slot_request_schema.validate(data, partial=True)
        if errors:
            return jsonify(errors), 400
        if not _owns_vehicle(vehicle_id):
            return forbidden("You can only manage availability for your own vehicles.")
        slot = VehicleAvailabilityService.get_slot(slot_id)
        if slot.vehicle_id != vehicle_id:
            return jsonify({'error': 'Availability slot not found for this vehicle'}), 404
        slot = VehicleAvailabilityService.update_slot(slot_id, data)
        return jsonify(schema.dump(slot)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in update_availability: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@vehicle_availability_bp.route('/vehicles/<int:vehicle_id>/availability/<int:slot_id>', methods=['DELETE'])
@roles_accepted(RoleName.ADMIN, RoleName.DRIVER)
def delete_availability(vehicle_id, slot_id):
    try:
        if not _owns_vehicle(vehicle_id):
            return forbidden("You can only manage availability for your own vehicles.")
        slot = VehicleAvailabilityService.get_slot(slot_id)
        if slot.vehicle_id != vehicle_id:
            return jsonify({'error': 'Availability slot not found for this vehicle'}), 404
        VehicleAvailabilityService.remove_slot(slot_id)
        return jsonify({'message': 'Availability slot deleted'}), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in delete_availability: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@vehicle_availability_bp.route('/vehicles/<int:vehicle_id>/availability/check', methods=['GET'])
@roles_accepted(RoleName.ADMIN, RoleName.DRIVER, RoleName.TRAVELER)
def check_availability(vehicle_id):
    """
    Advisory availability check for a date range.
    Query params: start_date, end_date (YYYY-MM-DD)
    """
    try:
        start_date = request.args.get('start_date')
        end_date = request.args.get('end_date')
        if not start_date or not end_date:
            return jsonify({'error': 'start_date and end_date are required'}), 400
        VehicleAvailabilityService._get_vehicle(vehicle_id)
        available = VehicleAvailabilityService.is_available(vehicle_id, start_date, end_date)
        return jsonify({'vehicle_id': vehicle_id, 'available': available}), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in check_availability: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500
