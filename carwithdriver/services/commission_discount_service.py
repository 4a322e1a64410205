import logging
from datetime import date
from typing import Dict, List, Any, Optional, Tuple, Iterable
from flask import current_app, has_app_context
from sqlalchemy.orm.exc import StaleDataError
from carwithdriver.extensions import db
from carwithdriver.models.booking import Booking, BookingStatus
from carwithdriver.models.commission_discount import CommissionDiscount
from carwithdriver.services.errors import (
    ServiceError,
    ValidationError,
    NotFound,
    PartialRecalculationFailure,
)
from carwithdriver.services.commission_rate_service import (
    apply_commission,
    load_discounts_covering,
    RATE_EPSILON,
)
from carwithdriver.utils import timezone_utils
from carwithdriver.utils.validation import sanitize_string, to_date

logger = logging.getLogger(__name__)

MAX_DISCOUNT_PERCENT = 8


def _max_discount_percent() -> float:
    if has_app_context():
        return float(current_app.config.get('MAX_DISCOUNT_PERCENT', MAX_DISCOUNT_PERCENT))
    return float(MAX_DISCOUNT_PERCENT)


def _parse_percent(value: Any) -> float:
    try:
        percent = float(value)
    except (TypeError, ValueError):
        raise ValidationError("discount_percent must be a number")
    maximum = _max_discount_percent()
    if percent < 0 or percent > maximum:
        raise ValidationError(f"discount_percent must be between 0 and {maximum:g}")
    return round(percent, 2)


def _parse_active(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', '1', 'yes', 'on'):
        return True
    if isinstance(value, str) and value.strip().lower() in ('false', '0', 'no', 'off'):
        return False
    if isinstance(value, int):
        return bool(value)
    raise ValidationError("active must be true or false")


def _clean_payload(payload: Dict[str, Any], partial: bool) -> Dict[str, Any]:
    """Validate a discount payload and convert it to column values."""
    data = {}
    if not partial or 'name' in payload:
        name = sanitize_string(payload.get('name'), 160, 'name')
        if not name:
            raise ValidationError("Discount name is required")
        data['name'] = name
    if 'description' in payload:
        data['description'] = sanitize_string(payload.get('description'), 1000, 'description')
    if not partial or 'discount_percent' in payload:
        if payload.get('discount_percent') is None:
            raise ValidationError("discount_percent is required")
        data['discount_percent'] = _parse_percent(payload['discount_percent'])
    if not partial or 'start_date' in payload:
        data['start_date'] = to_date(payload.get('start_date'), 'start_date')
    if not partial or 'end_date' in payload:
        data['end_date'] = to_date(payload.get('end_date'), 'end_date')
    if 'active' in payload and payload['active'] is not None:
        data['active'] = _parse_active(payload['active'])
    return data


class CommissionDiscountService:
    @staticmethod
    def list_discounts() -> List[CommissionDiscount]:
        try:
            return CommissionDiscount.query.order_by(
                CommissionDiscount.start_date.desc(), CommissionDiscount.id.desc()
            ).all()
        except Exception as e:
            logger.error(f"Error fetching commission discounts: {e}", exc_info=True)
            raise ServiceError("Could not fetch discounts. Please try again later.")

    @staticmethod
    def get_discount(discount_id: int) -> CommissionDiscount:
        discount = db.session.get(CommissionDiscount, discount_id)
        if not discount:
            raise NotFound(f"Discount with ID {discount_id} not found")
        return discount

    @staticmethod
    def create_discount(payload: Dict[str, Any], actor_id: Optional[int] = None,
                        today: Optional[date] = None) -> Dict[str, Any]:
        """
        Create a discount and re-price the bookings its window touches.

        Returns:
            dict: discount, recalculated_bookings, failed_bookings
        """
        data = _clean_payload(payload, partial=False)
        if data['end_date'] < data['start_date']:
            raise ValidationError("End date must be on or after the start date.")

        try:
            discount = CommissionDiscount(created_by=actor_id, updated_by=actor_id, **data)
            db.session.add(discount)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error creating commission discount: {e}", exc_info=True)
            raise ServiceError("Unable to create discount at the moment.")

        logger.info(
            f"Created commission discount {discount.id} '{discount.name}' "
            f"{discount.discount_percent}% from {discount.start_date} to {discount.end_date}"
        )
        sweep = CommissionDiscountService.recalculate(
            [(discount.start_date, discount.end_date)], today=today
        )
        return {'discount': discount, **sweep}

    @staticmethod
    def update_discount(discount_id: int, payload: Dict[str, Any], actor_id: Optional[int] = None,
                        today: Optional[date] = None) -> Dict[str, Any]:
        """
        Update a discount. Bookings under both the old and the new window
        are re-priced, so narrowing a window restores full commission on the
        bookings it no longer covers.
        """
        discount = CommissionDiscountService.get_discount(discount_id)
        original_window = (discount.start_date, discount.end_date)

        data = _clean_payload(payload, partial=True)
        next_start = data.get('start_date', discount.start_date)
        next_end = data.get('end_date', discount.end_date)
        if next_end < next_start:
            raise ValidationError("End date must be on or after the start date.")

        try:
            for field, value in data.items():
                setattr(discount, field, value)
            if actor_id is not None:
                discount.updated_by = actor_id
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating commission discount {discount_id}: {e}", exc_info=True)
            raise ServiceError("Unable to update discount at the moment.")

        logger.info(f"Updated commission discount {discount_id}: {sorted(data.keys())}")
        sweep = CommissionDiscountService.recalculate(
            [original_window, (discount.start_date, discount.end_date)], today=today
        )
        return {'discount': discount, **sweep}

    @staticmethod
    def delete_discount(discount_id: int, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Hard-delete a discount; live bookings it priced fall back to whatever
        else applies, exactly as if it had been switched off. Cancelled,
        rejected and completed bookings keep its id and label as priced.
        """
        discount = CommissionDiscountService.get_discount(discount_id)
        window = (discount.start_date, discount.end_date)

        try:
            db.session.delete(discount)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error deleting commission discount {discount_id}: {e}", exc_info=True)
            raise ServiceError("Unable to delete discount at the moment.")

        logger.info(f"Deleted commission discount {discount_id}")
        sweep = CommissionDiscountService.recalculate([window], today=today)
        return {'discount': discount, **sweep}

    @staticmethod
    def _affected_booking_ids(windows: List[Tuple[date, date]], today: date) -> List[int]:
        window_filter = db.or_(*[
            db.and_(Booking.start_date <= end, Booking.end_date >= start)
            for start, end in windows
        ])
        rows = db.session.query(Booking.id).filter(
            Booking.status.in_(BookingStatus.LIVE),
            Booking.end_date >= today,
            window_filter,
        ).order_by(Booking.id).all()
        return [row.id for row in rows]

    @staticmethod
    def recalculate(windows: Iterable[Tuple[date, date]], today: Optional[date] = None) -> Dict[str, Any]:
        """
        Re-price every live, not-yet-completed booking whose trip intersects
        one of the windows.

        Each booking is reloaded, re-priced and committed on its own; the
        UPDATE is a compare-and-set on the booking's version column, so a
        traveller's concurrent cancellation wins over the sweep. Bookings
        that fail are logged and skipped.

        A booking counts as recalculated only when its effective commission
        rate moved, so running the sweep twice reports 0 the second time.

        Returns:
            dict: recalculated_bookings (int), failed_bookings (list of ids)
                and failures (PartialRecalculationFailure records)
        """
        today = today or timezone_utils.today()
        unique_windows = []
        for start, end in windows:
            if start is None or end is None or (start, end) in unique_windows:
                continue
            unique_windows.append((start, end))
        if not unique_windows:
            return {'recalculated_bookings': 0, 'failed_bookings': [], 'failures': []}

        booking_ids = CommissionDiscountService._affected_booking_ids(unique_windows, today)
        recalculated = 0
        failures = []

        for booking_id in booking_ids:
            try:
                booking = Booking.query.filter_by(id=booking_id).populate_existing().first()
                if booking is None or booking.status not in BookingStatus.LIVE or booking.is_completed(today):
                    # Cancelled, rejected or finished since the sweep started; financially final
                    continue

                previous_rate = booking.commission_rate
                changed = apply_commission(booking, load_discounts_covering(booking.start_date))
                if not changed:
                    continue

                db.session.commit()
                if previous_rate is None or abs(previous_rate - booking.commission_rate) >= RATE_EPSILON:
                    recalculated += 1
            except StaleDataError as e:
                db.session.rollback()
                failure = PartialRecalculationFailure(
                    f"Booking {booking_id} was modified concurrently; skipped", booking_id=booking_id
                )
                failures.append(failure)
                logger.error(f"Recalculation skipped booking {booking_id}: {e}")
            except Exception as e:
                db.session.rollback()
                failure = PartialRecalculationFailure(
                    f"Booking {booking_id} could not be re-priced: {e}", booking_id=booking_id
                )
                failures.append(failure)
                logger.error(f"Recalculation failed for booking {booking_id}: {e}", exc_info=True)

        logger.info(
            f"Commission recalculation over {unique_windows}: {len(booking_ids)} candidate(s), "
            f"{recalculated} recalculated, {len(failures)} failed"
        )
        return {
            'recalculated_bookings': recalculated,
            'failed_bookings': [f.booking_id for f in failures],
            'failures': failures,
        }
