from flask import jsonify
from carwithdriver.services.errors import (
    ServiceError,
    ValidationError,
    InvalidTransition,
    NotFound,
    OverlapConflict,
)
from carwithdriver.schemas.vehicle_availability_schema import VehicleAvailabilitySchema

conflict_schema = VehicleAvailabilitySchema()

GENERIC_ERROR = 'An unexpected error occurred. Please try again later.'


def service_error_response(error: ServiceError):
    """Map an engine error to its JSON body and HTTP status"""
    if isinstance(error, OverlapConflict):
        body = {'error': error.message}
        if error.conflicting_slot is not None:
            body['conflict'] = conflict_schema.dump(error.conflicting_slot)
        return jsonify(body), 409
    if isinstance(error, InvalidTransition):
        return jsonify({'error': error.message}), 409
    if isinstance(error, NotFound):
        return jsonify({'error': error.message}), 404
    if isinstance(error, ValidationError):
        return jsonify({'error': error.message}), 400
    return jsonify({'error': error.message}), 400


def forbidden(message='You do not have access to this resource.'):
    return jsonify({'error': message}), 403
