import logging
from datetime import date
from typing import Dict, List, Any, Optional, Union
from carwithdriver.extensions import db
from carwithdriver.models.vehicle import Vehicle
from carwithdriver.models.vehicle_availability import VehicleAvailability, AvailabilityStatus
from carwithdriver.services.errors import ServiceError, ValidationError, NotFound, OverlapConflict
from carwithdriver.utils.validation import sanitize_string, to_date as _to_date

logger = logging.getLogger(__name__)

NOTE_MAX_LENGTH = 500


def _clean_note(note: Optional[str]) -> Optional[str]:
    return sanitize_string(note, max_length=NOTE_MAX_LENGTH, field_name="note")


class VehicleAvailabilityService:
    @staticmethod
    def _get_vehicle(vehicle_id: int) -> Vehicle:
        vehicle = Vehicle.query_active().filter_by(id=vehicle_id).first()
        if not vehicle:
            raise NotFound(f"Vehicle with ID {vehicle_id} not found")
        return vehicle

    @staticmethod
    def _find_status_conflict(vehicle_id: int, start_date: date, end_date: date, status: str,
                              exclude_id: Optional[int] = None) -> Optional[VehicleAvailability]:
        """First slot on the vehicle with a different status overlapping the range"""
        query = VehicleAvailability.query.filter(
            VehicleAvailability.vehicle_id == vehicle_id,
            VehicleAvailability.status != status,
            VehicleAvailability.start_date <= end_date,
            VehicleAvailability.end_date >= start_date,
        )
        if exclude_id is not None:
            query = query.filter(VehicleAvailability.id != exclude_id)
        return query.order_by(VehicleAvailability.start_date).first()

    @staticmethod
    def _raise_conflict(slot: VehicleAvailability, status: str):
        raise OverlapConflict(
            f"Cannot mark these dates as {status}: they overlap a slot marked "
            f"{slot.status} from {slot.start_date} to {slot.end_date}",
            conflicting_slot=slot
        )

    @staticmethod
    def list_slots(vehicle_id: int) -> List[VehicleAvailability]:
        VehicleAvailabilityService._get_vehicle(vehicle_id)
        return VehicleAvailability.query.filter_by(vehicle_id=vehicle_id).order_by(
            VehicleAvailability.start_date, VehicleAvailability.id
        ).all()

    @staticmethod
    def get_slot(slot_id: int) -> VehicleAvailability:
        slot = db.session.get(VehicleAvailability, slot_id)
        if not slot:
            raise NotFound(f"Availability slot with ID {slot_id} not found")
        return slot

    @staticmethod
    def add_slot(vehicle_id: int, start_date: Union[str, date], end_date: Union[str, date],
                 status: str = AvailabilityStatus.AVAILABLE, note: Optional[str] = None) -> VehicleAvailability:
        """
        Add a labelled date range to a vehicle's calendar.

        Overlapping a slot with the same status is allowed (the slots are kept
        side by side, not merged); overlapping a slot with a different status
        is rejected.

        Raises:
            NotFound: If the vehicle does not exist
            ValidationError: If the range or status is invalid
            OverlapConflict: If a slot with a different status overlaps
        """
        VehicleAvailabilityService._get_vehicle(vehicle_id)
        start_dt = _to_date(start_date, 'start_date')
        end_dt = _to_date(end_date, 'end_date')
        if end_dt < start_dt:
            raise ValidationError("End date cannot be before start date")
        if status not in AvailabilityStatus.ALL:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(AvailabilityStatus.ALL)}")
        note = _clean_note(note)

        conflict = VehicleAvailabilityService._find_status_conflict(vehicle_id, start_dt, end_dt, status)
        if conflict:
            VehicleAvailabilityService._raise_conflict(conflict, status)

        try:
            slot = VehicleAvailability(
                vehicle_id=vehicle_id,
                start_date=start_dt,
                end_date=end_dt,
                status=status,
                note=note
            )
            db.session.add(slot)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating availability slot: {e}", exc_info=True)
            raise ServiceError("Could not save availability. Please try again later.")

        logger.info(f"Added {status} slot {slot.id} to vehicle {vehicle_id} from {start_dt} to {end_dt}")
        return slot

    @staticmethod
    def update_slot(slot_id: int, patch: Dict[str, Any]) -> VehicleAvailability:
        """
        Update a slot. Overlaps are re-checked against the vehicle's other
        slots whenever the range or the status changes.
        """
        slot = VehicleAvailabilityService.get_slot(slot_id)

        start_dt = _to_date(patch['start_date'], 'start_date') if patch.get('start_date') is not None else slot.start_date
        end_dt = _to_date(patch['end_date'], 'end_date') if patch.get('end_date') is not None else slot.end_date
        status = patch.get('status') or slot.status

        if end_dt < start_dt:
            raise ValidationError("End date cannot be before start date")
        if status not in AvailabilityStatus.ALL:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(AvailabilityStatus.ALL)}")

        range_or_status_changed = (
            start_dt != slot.start_date or end_dt != slot.end_date or status != slot.status
        )
        if range_or_status_changed:
            conflict = VehicleAvailabilityService._find_status_conflict(
                slot.vehicle_id, start_dt, end_dt, status, exclude_id=slot.id
            )
            if conflict:
                VehicleAvailabilityService._raise_conflict(conflict, status)

        note = _clean_note(patch['note']) if 'note' in patch else slot.note

        try:
            slot.start_date = start_dt
            slot.end_date = end_dt
            slot.status = status
            slot.note = note
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating availability slot {slot_id}: {e}", exc_info=True)
            raise ServiceError("Could not update availability. Please try again later.")

        logger.info(f"Updated availability slot {slot_id}")
        return slot

    @staticmethod
    def remove_slot(slot_id: int) -> bool:
        slot = VehicleAvailabilityService.get_slot(slot_id)
        try:
            db.session.delete(slot)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error deleting availability slot {slot_id}: {e}", exc_info=True)
            raise ServiceError("Could not delete availability. Please try again later.")
        logger.info(f"Removed availability slot {slot_id}")
        return True

    @staticmethod
    def find_conflicts(vehicle_id: int, start_date: date, end_date: date) -> List[VehicleAvailability]:
        """Unavailable slots overlapping the requested range"""
        return VehicleAvailability.query.filter(
            VehicleAvailability.vehicle_id == vehicle_id,
            VehicleAvailability.status == AvailabilityStatus.UNAVAILABLE,
            VehicleAvailability.start_date <= end_date,
            VehicleAvailability.end_date >= start_date,
        ).order_by(VehicleAvailability.start_date).all()

    @staticmethod
    def is_available(vehicle_id: int, start_date: Union[str, date], end_date: Union[str, date]) -> bool:
        """
        Advisory check only: nothing is locked, so two concurrent requests can
        both see the vehicle as free. The driver's accept/reject settles it.
        """
        start_dt = _to_date(start_date, 'start_date')
        end_dt = _to_date(end_date, 'end_date')
        return not VehicleAvailabilityService.find_conflicts(vehicle_id, start_dt, end_dt)
