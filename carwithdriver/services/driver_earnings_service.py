import calendar
import logging
from datetime import date
from typing import Dict, List, Any, Optional, Tuple
from flask import current_app, has_app_context
from carwithdriver.extensions import db
from carwithdriver.models.booking import Booking, BookingStatus
from carwithdriver.models.commission_discount import CommissionDiscount, DiscountStatus
from carwithdriver.models.driver_commission import DriverCommission, CommissionStatus
from carwithdriver.services.errors import ServiceError, ValidationError, NotFound
from carwithdriver.services.commission_rate_service import get_base_rate, round_currency
from carwithdriver.utils import timezone_utils
from carwithdriver.utils.validation import sanitize_string

logger = logging.getLogger(__name__)

COMMISSION_DUE_DAY = 5
HISTORY_LIMIT = 24
PERIOD_FORMAT_ERROR = 'Month must be formatted as YYYY-MM'


def _config(key, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def parse_period(value: Optional[str], today: date) -> Tuple[int, int]:
    """Parse ``YYYY-MM``; an empty value means the current month."""
    if not value:
        return today.year, today.month
    if not isinstance(value, str):
        raise ValidationError(PERIOD_FORMAT_ERROR)
    parts = value.strip().split('-')
    if len(parts) != 2:
        raise ValidationError(PERIOD_FORMAT_ERROR)
    try:
        year, month = int(parts[0]), int(parts[1])
    except ValueError:
        raise ValidationError(PERIOD_FORMAT_ERROR)
    if year < 2000 or not 1 <= month <= 12:
        raise ValidationError(PERIOD_FORMAT_ERROR)
    return year, month


def _next_month(year: int, month: int) -> Tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def build_period_meta(year: int, month: int) -> Dict[str, Any]:
    """Window [period_start, next_period_start) plus the commission due date."""
    next_year, next_month = _next_month(year, month)
    period_start = date(year, month, 1)
    next_start = date(next_year, next_month, 1)
    due_day = int(_config('COMMISSION_DUE_DAY', COMMISSION_DUE_DAY))
    return {
        'value': f"{year}-{month:02d}",
        'label': f"{calendar.month_name[month]} {year}",
        'year': year,
        'month': month,
        'period_start': period_start,
        'period_end': next_start,
        'last_day': date(year, month, calendar.monthrange(year, month)[1]),
        'due_date': date(next_year, next_month, due_day),
    }


class DriverEarningsService:
    @staticmethod
    def _qualifying_bookings(driver_id: int, today: date, period_start: Optional[date] = None,
                             period_end: Optional[date] = None):
        """Confirmed trips of the driver that have already finished."""
        query = Booking.query.filter(
            Booking.driver_id == driver_id,
            Booking.status == BookingStatus.CONFIRMED,
            Booking.end_date < today,
        )
        if period_start is not None:
            query = query.filter(Booking.end_date >= period_start)
        if period_end is not None:
            query = query.filter(Booking.end_date < period_end)
        return query

    @staticmethod
    def _period_discount(period_start: date, period_end: date, today: date) -> Optional[CommissionDiscount]:
        candidates = CommissionDiscount.query.filter(
            CommissionDiscount.active.is_(True),
            CommissionDiscount.start_date < period_end,
            CommissionDiscount.end_date >= period_start,
        ).order_by(
            CommissionDiscount.discount_percent.desc(),
            CommissionDiscount.start_date.desc(),
            CommissionDiscount.created_at.desc(),
        ).all()
        for discount in candidates:
            if discount.status_on(today) in (DiscountStatus.ACTIVE, DiscountStatus.EXPIRED):
                return discount
        return None

    @staticmethod
    def _get_or_create_record(driver_id: int, year: int, month: int) -> DriverCommission:
        record = DriverCommission.query.filter_by(driver_id=driver_id, year=year, month=month).first()
        if not record:
            record = DriverCommission(
                driver_id=driver_id,
                year=year,
                month=month,
                status=CommissionStatus.PENDING,
                booking_ids=[],
            )
            db.session.add(record)
        return record

    @staticmethod
    def summarize(driver_id: int, period_value: Optional[str] = None,
                  today: Optional[date] = None) -> Dict[str, Any]:
        """
        Monthly statement for a driver.

        Totals come from the confirmed, completed trips ending inside the
        month and are refreshed on every call; the statement record's
        payment status, slip and admin note are kept as they are.

        Returns:
            dict: period, totals, commission (DriverCommission), bookings,
            discount (CommissionDiscount or None) and bank_details
        """
        today = today or timezone_utils.today()
        year, month = parse_period(period_value, today)
        period = build_period_meta(year, month)

        bookings = DriverEarningsService._qualifying_bookings(
            driver_id, today, period['period_start'], period['period_end']
        ).order_by(Booking.end_date.asc(), Booking.id.asc()).all()

        total_gross = round_currency(sum(b.total_price or 0.0 for b in bookings))
        total_commission = round_currency(sum(b.commission_amount or 0.0 for b in bookings))
        total_driver_earnings = round_currency(total_gross - total_commission)
        blended_rate = round(total_commission / total_gross, 4) if total_gross > 0 else get_base_rate()

        try:
            record = DriverEarningsService._get_or_create_record(driver_id, year, month)
            record.booking_count = len(bookings)
            record.booking_ids = [b.id for b in bookings]
            record.total_gross = total_gross
            record.total_commission = total_commission
            record.total_driver_earnings = total_driver_earnings
            record.commission_rate = blended_rate
            record.last_recalculated_at = timezone_utils.utc_now()
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error saving commission statement for driver {driver_id} {period['value']}: {e}", exc_info=True)
            raise ServiceError("Unable to load earnings summary right now.")

        logger.info(
            f"Earnings summary for driver {driver_id} {period['value']}: {len(bookings)} booking(s), "
            f"gross {total_gross}, commission {total_commission}"
        )
        return {
            'period': period,
            'totals': {
                'booking_count': len(bookings),
                'total_gross': total_gross,
                'total_commission': total_commission,
                'total_driver_earnings': total_driver_earnings,
                'commission_rate': blended_rate,
            },
            'commission': record,
            'bookings': bookings,
            'discount': DriverEarningsService._period_discount(period['period_start'], period['period_end'], today),
            'bank_details': dict(_config('PLATFORM_BANK_DETAILS', {})),
        }

    @staticmethod
    def history(driver_id: int, limit: Optional[int] = None, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """One statement per month with at least one qualifying booking, newest first."""
        today = today or timezone_utils.today()
        limit = limit or int(_config('EARNINGS_HISTORY_LIMIT', HISTORY_LIMIT))

        end_dates = DriverEarningsService._qualifying_bookings(driver_id, today).with_entities(Booking.end_date).all()
        periods = sorted({(row.end_date.year, row.end_date.month) for row in end_dates}, reverse=True)

        return [
            DriverEarningsService.summarize(driver_id, f"{year}-{month:02d}", today=today)
            for year, month in periods[:limit]
        ]

    @staticmethod
    def get_commission(commission_id: int, driver_id: Optional[int] = None) -> DriverCommission:
        record = db.session.get(DriverCommission, commission_id)
        if not record or (driver_id is not None and record.driver_id != driver_id):
            raise NotFound("Commission record not found.")
        return record

    @staticmethod
    def record_payment_slip(commission_id: int, slip_url: str, filename: Optional[str] = None,
                            driver_id: Optional[int] = None) -> DriverCommission:
        """
        Attach an uploaded payment slip to a statement. The file itself lives
        in external storage; only its URL and name are kept. The statement
        status is left for an admin or the driver to move on explicitly.
        """
        slip_url = sanitize_string(slip_url, 512, 'payment_slip_url')
        if not slip_url:
            raise ValidationError("Payment slip not provided.")
        filename = sanitize_string(filename, 255, 'filename', truncate=True)
        record = DriverEarningsService.get_commission(commission_id, driver_id=driver_id)

        try:
            record.payment_slip_url = slip_url
            record.payment_slip_filename = filename
            record.payment_slip_uploaded_at = timezone_utils.utc_now()
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error saving payment slip for commission {commission_id}: {e}", exc_info=True)
            raise ServiceError("Unable to save payment slip right now.")

        logger.info(f"Payment slip recorded for commission {commission_id}")
        return record

    @staticmethod
    def set_status(commission_id: int, status: str, admin_note: Optional[str] = None) -> DriverCommission:
        if status not in CommissionStatus.ALL:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(CommissionStatus.ALL)}")
        admin_note = sanitize_string(admin_note, 500, 'admin_note')
        record = DriverEarningsService.get_commission(commission_id)

        try:
            record.status = status
            if admin_note is not None:
                record.admin_note = admin_note
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating commission {commission_id} status: {e}", exc_info=True)
            raise ServiceError("Unable to update commission status right now.")

        logger.info(f"Commission {commission_id} marked {status}")
        return record
