from datetime import date
import pytest
from carwithdriver.services.vehicle_availability_service import VehicleAvailabilityService
from carwithdriver.services.errors import ValidationError, NotFound, OverlapConflict


def test_unavailable_slot_blocks_overlapping_available_slot(vehicle):
    blocked = VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-05', '2030-06-10', status='unavailable')

    with pytest.raises(OverlapConflict) as exc:
        VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-07', '2030-06-12', status='available')

    assert exc.value.conflicting_slot.id == blocked.id
    assert len(VehicleAvailabilityService.list_slots(vehicle.id)) == 1


def test_same_status_slots_may_overlap(vehicle):
    VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-05', '2030-06-10', status='available')
    VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-07', '2030-06-12', status='available')

    slots = VehicleAvailabilityService.list_slots(vehicle.id)
    assert [(s.start_date, s.end_date) for s in slots] == [
        (date(2030, 6, 5), date(2030, 6, 10)),
        (date(2030, 6, 7), date(2030, 6, 12)),
    ]


def test_touching_ranges_overlap(vehicle):
    VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-05', '2030-06-10', status='unavailable')
    with pytest.raises(OverlapConflict):
        VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-10', '2030-06-11', status='available')
    # Adjacent, not overlapping
    VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-11', '2030-06-12', status='available')


def test_invalid_input(vehicle):
    with pytest.raises(ValidationError):
        VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-10', '2030-06-05')
    with pytest.raises(ValidationError):
        VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-05', '2030-06-10', status='maybe')
    with pytest.raises(ValidationError):
        VehicleAvailabilityService.add_slot(vehicle.id, 'June 5th', '2030-06-10')
    with pytest.raises(ValidationError):
        VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-05', '2030-06-10', note='x' * 501)
    with pytest.raises(NotFound):
        VehicleAvailabilityService.add_slot(9999, '2030-06-05', '2030-06-10')


def test_update_rechecks_overlap_but_not_against_itself(vehicle):
    VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-01', '2030-06-03', status='unavailable')
    slot = VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-05', '2030-06-10', status='available')

    updated = VehicleAvailabilityService.update_slot(slot.id, {'end_date': '2030-06-12', 'note': 'Weekend hire'})
    assert updated.end_date == date(2030, 6, 12)
    assert updated.note == 'Weekend hire'

    with pytest.raises(OverlapConflict):
        VehicleAvailabilityService.update_slot(slot.id, {'start_date': '2030-06-02'})

    # Flipping its own status is fine when nothing else overlaps
    flipped = VehicleAvailabilityService.update_slot(slot.id, {'status': 'unavailable'})
    assert flipped.status == 'unavailable'


def test_is_available_only_looks_at_unavailable_slots(vehicle):
    VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-01', '2030-06-30', status='available')
    assert VehicleAvailabilityService.is_available(vehicle.id, '2030-06-10', '2030-06-12') is True

    VehicleAvailabilityService.add_slot(vehicle.id, '2030-07-01', '2030-07-05', status='unavailable')
    assert VehicleAvailabilityService.is_available(vehicle.id, '2030-06-28', '2030-07-02') is False
    assert VehicleAvailabilityService.is_available(vehicle.id, '2030-07-06', '2030-07-08') is True


def test_remove_slot(vehicle):
    slot = VehicleAvailabilityService.add_slot(vehicle.id, '2030-06-05', '2030-06-10')
    assert VehicleAvailabilityService.remove_slot(slot.id) is True
    with pytest.raises(NotFound):
        VehicleAvailabilityService.get_slot(slot.id)
