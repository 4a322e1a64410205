import logging
from datetime import date
from typing import Dict, List, Any, Optional
from carwithdriver.extensions import db
from carwithdriver.models.booking import Booking, BookingStatus
from carwithdriver.models.vehicle import Vehicle
from carwithdriver.services.errors import ServiceError, ValidationError, InvalidTransition, NotFound
from carwithdriver.services.commission_rate_service import (
    apply_commission,
    get_base_rate,
    load_discounts_covering,
    round_currency,
    round_rate,
)
from carwithdriver.services.cancellation_service import prorate
from carwithdriver.services.vehicle_availability_service import VehicleAvailabilityService
from carwithdriver.utils import timezone_utils
from carwithdriver.utils.validation import sanitize_string, require_fields, to_date, to_non_negative_float

logger = logging.getLogger(__name__)


class BookingAction:
    ACCEPT = 'accept'
    REJECT = 'reject'

    ALL = [ACCEPT, REJECT]


# Ancillary fields a traveller may edit, with their column lengths
ANCILLARY_FIELDS = {
    'flight_number': 40,
    'arrival_time': 80,
    'departure_time': 80,
    'start_point': 200,
    'end_point': 200,
    'special_requests': 1000,
}


def calculate_total_days(start_date: date, end_date: date) -> int:
    """Billable days, counting both the first and the last day of the trip."""
    return max((end_date - start_date).days + 1, 1)


class BookingService:
    @staticmethod
    def get_booking(booking_id: int) -> Booking:
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise NotFound(f"Booking with ID {booking_id} not found")
        return booking

    @staticmethod
    def list_bookings(filters: Optional[Dict[str, Any]] = None) -> List[Booking]:
        """
        List bookings, soonest trip first.

        Filters (all optional): traveler_id, driver_id, vehicle_id,
        status (string or list), start_date/end_date (bookings overlapping the window).
        """
        filters = filters or {}
        query = Booking.query

        for field in ('traveler_id', 'driver_id', 'vehicle_id'):
            if filters.get(field) is not None:
                query = query.filter(getattr(Booking, field) == filters[field])

        status = filters.get('status')
        if status:
            statuses = [status] if isinstance(status, str) else list(status)
            invalid = [s for s in statuses if s not in BookingStatus.ALL]
            if invalid:
                raise ValidationError(f"Invalid status. Must be one of: {', '.join(BookingStatus.ALL)}")
            query = query.filter(Booking.status.in_(statuses))

        if filters.get('start_date'):
            query = query.filter(Booking.end_date >= to_date(filters['start_date'], 'start_date'))
        if filters.get('end_date'):
            query = query.filter(Booking.start_date <= to_date(filters['end_date'], 'end_date'))

        return query.order_by(Booking.start_date.asc(), Booking.created_at.desc()).all()

    @staticmethod
    def _validate_trip_dates(start_date: date, end_date: date, today: date) -> None:
        if end_date <= start_date:
            raise ValidationError("End date must be after the start date")
        if start_date < today:
            raise ValidationError(f"Start date ({start_date}) is in the past")

    @staticmethod
    def _overlapping_bookings(vehicle_id: int, start_date: date, end_date: date,
                              statuses: List[str], exclude_id: Optional[int] = None) -> List[Booking]:
        query = Booking.query.filter(
            Booking.vehicle_id == vehicle_id,
            Booking.status.in_(statuses),
            Booking.start_date <= end_date,
            Booking.end_date >= start_date,
        )
        if exclude_id is not None:
            query = query.filter(Booking.id != exclude_id)
        return query.all()

    @staticmethod
    def _availability_warnings(vehicle_id: int, start_date: date, end_date: date,
                               exclude_id: Optional[int] = None) -> List[str]:
        """Non-fatal conflicts surfaced to the caller; nothing here blocks a booking."""
        warnings = []
        for slot in VehicleAvailabilityService.find_conflicts(vehicle_id, start_date, end_date):
            warnings.append(
                f"Vehicle is marked unavailable from {slot.start_date} to {slot.end_date}"
                + (f": {slot.note}" if slot.note else "")
            )
        overlapping = BookingService._overlapping_bookings(
            vehicle_id, start_date, end_date, BookingStatus.LIVE, exclude_id=exclude_id
        )
        if overlapping:
            warnings.append(
                f"Vehicle already has {len(overlapping)} pending or confirmed booking(s) overlapping these dates"
            )
        return warnings

    @staticmethod
    def create_booking(data: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
        """
        Create a pending direct booking, priced at price_per_day (default:
        the vehicle's rate) times the number of trip days. Offer terms in
        data (offer_id, total_price, ...) are ignored; offer bookings go
        through create_from_offer.

        The commission base rate is snapshotted here and never re-read from
        config for this booking.

        Args:
            data: vehicle_id, start_date, end_date, traveler_name,
                traveler_email, traveler_phone, and optionally traveler_id,
                price_per_day and the ancillary trip fields
            today: Reference date (defaults to today in the display timezone)

        Returns:
            dict: booking and a list of non-fatal availability warnings

        Raises:
            ValidationError: If required fields or the date range are invalid
            NotFound: If the vehicle does not exist
        """
        return BookingService._create(data, None, today)

    @staticmethod
    def _create(data: Dict[str, Any], offer: Optional[Dict[str, Any]], today: Optional[date]) -> Dict[str, Any]:
        today = today or timezone_utils.today()
        require_fields(data, ['vehicle_id', 'start_date', 'end_date',
                              'traveler_name', 'traveler_email', 'traveler_phone'])

        start_dt = to_date(data['start_date'], 'start_date')
        end_dt = to_date(data['end_date'], 'end_date')
        BookingService._validate_trip_dates(start_dt, end_dt, today)

        vehicle = Vehicle.query_active().filter_by(id=data['vehicle_id']).first()
        if not vehicle:
            raise NotFound(f"Vehicle with ID {data['vehicle_id']} not found")

        total_days = calculate_total_days(start_dt, end_dt)
        if offer is not None:
            total_price = round_currency(to_non_negative_float(offer['total_price'], 'total_price'))
            price_per_day = round_currency(total_price / total_days)
        else:
            raw_rate = data.get('price_per_day')
            price_per_day = to_non_negative_float(
                raw_rate if raw_rate is not None else vehicle.price_per_day, 'price_per_day'
            )
            total_price = round_currency(price_per_day * total_days)

        booking = Booking(
            vehicle_id=vehicle.id,
            driver_id=vehicle.driver_id,
            traveler_id=data.get('traveler_id'),
            traveler_name=sanitize_string(data['traveler_name'], 120, 'traveler_name'),
            traveler_email=sanitize_string(data['traveler_email'], 160, 'traveler_email').lower(),
            traveler_phone=sanitize_string(data['traveler_phone'], 40, 'traveler_phone'),
            start_date=start_dt,
            end_date=end_dt,
            status=BookingStatus.PENDING,
            total_days=total_days,
            price_per_day=price_per_day,
            total_price=total_price,
            offer_id=offer['offer_id'] if offer else None,
            conversation_id=offer.get('conversation_id') if offer else None,
            total_kms=offer.get('total_kms') if offer else None,
            price_per_extra_km=offer.get('price_per_extra_km') if offer else None,
            commission_base_rate=round_rate(get_base_rate()),
        )
        for field, max_length in ANCILLARY_FIELDS.items():
            setattr(booking, field, sanitize_string(data.get(field), max_length, field, truncate=True))

        apply_commission(booking, load_discounts_covering(start_dt))
        warnings = BookingService._availability_warnings(vehicle.id, start_dt, end_dt)

        try:
            db.session.add(booking)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating booking: {e}", exc_info=True)
            raise ServiceError("Could not create booking. Please try again later.")

        if warnings:
            logger.warning(f"Booking {booking.id} created with availability warnings: {warnings}")
        logger.info(
            f"Created booking {booking.id} for vehicle {vehicle.id} from {start_dt} to {end_dt}: "
            f"total {booking.total_price}, commission {booking.commission_amount} at {booking.commission_rate}"
        )
        return {'booking': booking, 'warnings': warnings}

    @staticmethod
    def create_from_offer(offer: Dict[str, Any], traveler: Dict[str, Any],
                          today: Optional[date] = None) -> Dict[str, Any]:
        """
        Turn an accepted chat offer into a booking. The offer fixes the dates
        and the total price; the traveller supplies contact details and any
        ancillary trip fields.
        """
        require_fields(offer, ['offer_id', 'vehicle_id', 'start_date', 'end_date', 'total_price'])
        data = dict(traveler)
        data.update({
            'vehicle_id': offer['vehicle_id'],
            'start_date': offer['start_date'],
            'end_date': offer['end_date'],
        })
        data.pop('price_per_day', None)
        return BookingService._create(data, offer, today)

    @staticmethod
    def driver_respond(booking_id: int, action: str) -> Dict[str, Any]:
        """
        Accept or reject a pending booking. Accepting over another confirmed
        booking for the same vehicle is allowed but flagged in the warnings.
        """
        normalized = action.strip().lower() if isinstance(action, str) else ''
        if normalized not in BookingAction.ALL:
            raise ValidationError("Specify whether you want to accept or reject the booking.")

        booking = BookingService.get_booking(booking_id)
        if booking.status != BookingStatus.PENDING:
            raise InvalidTransition(
                f"Only pending bookings can be {'accepted' if normalized == BookingAction.ACCEPT else 'rejected'}; "
                f"booking {booking_id} is {booking.status}"
            )

        warnings = []
        if normalized == BookingAction.ACCEPT:
            confirmed = BookingService._overlapping_bookings(
                booking.vehicle_id, booking.start_date, booking.end_date,
                [BookingStatus.CONFIRMED], exclude_id=booking.id
            )
            if confirmed:
                warnings.append(
                    f"Another confirmed booking overlaps these dates "
                    f"(booking {', '.join(str(b.id) for b in confirmed)})"
                )
                logger.warning(f"Booking {booking_id} accepted over overlapping confirmed bookings {[b.id for b in confirmed]}")
            booking.status = BookingStatus.CONFIRMED
        else:
            booking.status = BookingStatus.REJECTED

        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating booking {booking_id} status: {e}", exc_info=True)
            raise ServiceError("Could not update booking status. Please try again later.")

        logger.info(f"Booking {booking_id} {booking.status} by driver {booking.driver_id}")
        return {'booking': booking, 'warnings': warnings}

    @staticmethod
    def traveler_update(booking_id: int, patch: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
        """
        Edit a booking before the trip starts.

        Offer bookings keep the dates the offer fixed; only the ancillary
        fields (pickup/drop points, flight info, special requests) change.
        New dates on a direct booking re-price it with the same pricing
        function used at creation.

        Raises:
            InvalidTransition: If the booking is no longer live or the trip has started
            ValidationError: If dates are invalid or an offer booking's dates would change
        """
        today = today or timezone_utils.today()
        booking = BookingService.get_booking(booking_id)

        if booking.status not in BookingStatus.LIVE:
            raise InvalidTransition("This booking is no longer active.")
        if booking.has_started(today):
            raise InvalidTransition("Trips that have already started cannot be edited. Please contact your driver.")

        next_start = to_date(patch['start_date'], 'start_date') if patch.get('start_date') is not None else booking.start_date
        next_end = to_date(patch['end_date'], 'end_date') if patch.get('end_date') is not None else booking.end_date
        dates_changed = next_start != booking.start_date or next_end != booking.end_date

        if dates_changed and booking.is_from_offer:
            raise ValidationError("Please coordinate with your driver via chat to adjust offer-based bookings.")
        if dates_changed:
            BookingService._validate_trip_dates(next_start, next_end, today)

        ancillary = {}
        for field, max_length in ANCILLARY_FIELDS.items():
            if field in patch:
                ancillary[field] = sanitize_string(patch[field], max_length, field, truncate=True)

        warnings = []
        if dates_changed:
            booking.start_date = next_start
            booking.end_date = next_end
            booking.total_days = calculate_total_days(next_start, next_end)
            booking.total_price = round_currency(booking.price_per_day * booking.total_days)
            apply_commission(booking, load_discounts_covering(next_start))
            warnings = BookingService._availability_warnings(
                booking.vehicle_id, next_start, next_end, exclude_id=booking.id
            )

        for field, value in ancillary.items():
            setattr(booking, field, value)

        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating booking {booking_id}: {e}", exc_info=True)
            raise ServiceError("Could not update your booking. Please try again later.")

        logger.info(f"Traveller updated booking {booking_id}" + (" with new dates" if dates_changed else ""))
        return {'booking': booking, 'warnings': warnings}

    @staticmethod
    def traveler_cancel(booking_id: int, today: Optional[date] = None) -> Booking:
        """
        Cancel a pending or confirmed booking and record the prorated penalty.
        Commission fields are left exactly as they were.
        """
        today = today or timezone_utils.today()
        booking = BookingService.get_booking(booking_id)

        if booking.status not in BookingStatus.LIVE:
            raise InvalidTransition(f"Booking {booking_id} is already {booking.status}")

        proration = prorate(today, booking.start_date, booking.end_date, booking.total_price)

        try:
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = timezone_utils.utc_now()
            booking.cancellation_penalty = proration['penalty_amount']
            booking.cancellation_refund = proration['refund_amount']
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error cancelling booking {booking_id}: {e}", exc_info=True)
            raise ServiceError("Could not cancel this booking. Please try again later.")

        logger.info(
            f"Booking {booking_id} cancelled by traveller: penalty {proration['penalty_amount']}, "
            f"refund {proration['refund_amount']}"
        )
        return booking
