from flask import Blueprint, request, jsonify
from carwithdriver.services.booking_service import BookingService
from carwithdriver.services.errors import ServiceError
from carwithdriver.schemas.booking_schema import (
    BookingSchema,
    BookingCreateSchema,
    OfferBookingSchema,
    BookingUpdateSchema,
    BookingResponseSchema,
)
from carwithdriver.api.errors import service_error_response, forbidden, GENERIC_ERROR
from carwithdriver.models.role import RoleName
import logging
from flask_security import roles_accepted, current_user
from carwithdriver.extensions import db

booking_bp = Blueprint('booking', __name__)

schema = BookingSchema(session=db.session)
schema_many = BookingSchema(many=True, session=db.session)
create_schema = BookingCreateSchema()
offer_schema = OfferBookingSchema()
update_schema = BookingUpdateSchema()
response_schema = BookingResponseSchema()

logger = logging.getLogger(__name__)


def _is_admin():
    return current_user.has_role(RoleName.ADMIN)


def _can_view(booking):
    return _is_admin() or current_user.id in (booking.driver_id, booking.traveler_id)


def _booking_payload(result):
    return {'booking': schema.dump(result['booking']), 'warnings': result['warnings']}


@booking_bp.route('/bookings', methods=['POST'])
@roles_accepted(RoleName.ADMIN, RoleName.TRAVELER)
def create_booking():
    try:
        data = request.get_json(silent=True) or {}
        errors = create_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        data = create_schema.load(data)
        if not _is_admin():
            # Travellers book at the vehicle's rate
            data.pop('price_per_day', None)
        if not _is_admin() or not data.get('traveler_id'):
            data['traveler_id'] = current_user.id
        result = BookingService.create_booking(data)
        return jsonify(_booking_payload(result)), 201
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in create_booking: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@booking_bp.route('/bookings/from-offer', methods=['POST'])
@roles_accepted(RoleName.ADMIN)
def create_booking_from_offer():
    """
    Materialise an accepted chat offer as a booking. Called by the chat
    service once the traveller accepts; offer terms are not taken from travellers.
    Body: {offer: {...}, traveler_id, traveler_name, traveler_email, traveler_phone, ...}
    """
    try:
        data = request.get_json(silent=True) or {}
        errors = offer_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        data = offer_schema.load(data)
        offer = data.pop('offer')
        result = BookingService.create_from_offer(offer, data)
        return jsonify(_booking_payload(result)), 201
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in create_booking_from_offer: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@booking_bp.route('/bookings', methods=['GET'])
@roles_accepted(RoleName.ADMIN, RoleName.DRIVER, RoleName.TRAVELER)
def list_bookings():
    """
    List bookings visible to the caller.
    Query params: status (comma separated), vehicle_id, start_date, end_date;
    admins may also filter by driver_id and traveler_id.
    """
    try:
        filters = {
            'vehicle_id': request.args.get('vehicle_id', type=int),
            'start_date': request.args.get('start_date'),
            'end_date': request.args.get('end_date'),
        }
        status = request.args.get('status')
        if status:
            filters['status'] = [s.strip() for s in status.split(',') if s.strip()]

        if _is_admin():
            filters['driver_id'] = request.args.get('driver_id', type=int)
            filters['traveler_id'] = request.args.get('traveler_id', type=int)
        elif current_user.has_role(RoleName.DRIVER):
            filters['driver_id'] = current_user.id
        else:
            filters['traveler_id'] = current_user.id

        bookings = BookingService.list_bookings(filters)
        return jsonify(schema_many.dump(bookings)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in list_bookings: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@booking_bp.route('/bookings/<int:booking_id>', methods=['GET'])
@roles_accepted(RoleName.ADMIN, RoleName.DRIVER, RoleName.TRAVELER)
def get_booking(booking_id):
    try:
        booking = BookingService.get_booking(booking_id)
        if not _can_view(booking):
            return forbidden()
        return jsonify(schema.dump(booking)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in get_booking: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@booking_bp.route('/bookings/<int:booking_id>/respond', methods=['POST'])
@roles_accepted(RoleName.ADMIN, RoleName.DRIVER)
def respond_to_booking(booking_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = response_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        booking = BookingService.get_booking(booking_id)
        if not _is_admin() and booking.driver_id != current_user.id:
            return forbidden("You can only respond to bookings for your own vehicles.")
        result = BookingService.driver_respond(booking_id, data['action'])
        return jsonify(_booking_payload(result)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in respond_to_booking: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@booking_bp.route('/bookings/<int:booking_id>', methods=['PUT'])
@roles_accepted(RoleName.ADMIN, RoleName.TRAVELER)
def update_booking(booking_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = update_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        booking = BookingService.get_booking(booking_id)
        if not _is_admin() and booking.traveler_id != current_user.id:
            return forbidden("You can only edit your own bookings.")
        result = BookingService.traveler_update(booking_id, data)
        return jsonify(_booking_payload(result)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in update_booking: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500


@booking_bp.route('/bookings/<int:booking_id>/cancel', methods=['POST'])
@roles_accepted(RoleName.ADMIN, RoleName.TRAVELER)
def cancel_booking(booking_id):
    try:
        booking = BookingService.get_booking(booking_id)
        if not _is_admin() and booking.traveler_id != current_user.id:
            return forbidden("You can only cancel your own bookings.")
        booking = BookingService.traveler_cancel(booking_id)
        return jsonify({
            'booking': schema.dump(booking),
            'cancellation': {
                'penalty_amount': booking.cancellation_penalty,
                'refund_amount': booking.cancellation_refund,
            }
        }), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        logger.error(f"Unhandled error in cancel_booking: {e}", exc_info=True)
        return jsonify({'error': GENERIC_ERROR}), 500
