from datetime import date
import pytest
from carwithdriver.tests.conftest import TODAY
from carwithdriver.models.driver_commission import DriverCommission, CommissionStatus
from carwithdriver.services.booking_service import BookingService
from carwithdriver.services.commission_discount_service import CommissionDiscountService
from carwithdriver.services.driver_earnings_service import DriverEarningsService, parse_period, build_period_meta
from carwithdriver.services.errors import ValidationError, NotFound

AFTER_JUNE = date(2030, 7, 10)


def confirmed_booking(booking_data, start, end, today=TODAY):
    booking = BookingService.create_booking(booking_data(start_date=start, end_date=end), today=today)['booking']
    BookingService.driver_respond(booking.id, 'accept')
    return booking


def test_parse_period():
    assert parse_period('2030-06', TODAY) == (2030, 6)
    assert parse_period(None, TODAY) == (2030, 6)
    for bad in ('2030/06', '2030-13', 'June', '1999-12', '2030-06-01'):
        with pytest.raises(ValidationError):
            parse_period(bad, TODAY)


def test_period_meta_due_date_rolls_over_the_year():
    meta = build_period_meta(2030, 12)
    assert meta['label'] == 'December 2030'
    assert meta['period_start'] == date(2030, 12, 1)
    assert meta['period_end'] == date(2031, 1, 1)
    assert meta['last_day'] == date(2030, 12, 31)
    assert meta['due_date'] == date(2031, 1, 5)


def test_summary_totals_completed_confirmed_bookings(booking_data, driver):
    first = confirmed_booking(booking_data, '2030-06-03', '2030-06-05')
    second = confirmed_booking(booking_data, '2030-06-10', '2030-06-13')
    BookingService.create_booking(booking_data(start_date='2030-06-20', end_date='2030-06-21'), today=TODAY)
    cancelled = confirmed_booking(booking_data, '2030-06-24', '2030-06-25')
    BookingService.traveler_cancel(cancelled.id, today=TODAY)

    summary = DriverEarningsService.summarize(driver.id, '2030-06', today=AFTER_JUNE)

    totals = summary['totals']
    assert totals['booking_count'] == 2
    assert totals['total_gross'] == pytest.approx(1500.0 + 2000.0)
    assert totals['total_commission'] == pytest.approx(120.0 + 160.0)
    assert totals['total_driver_earnings'] == pytest.approx(3220.0)
    assert totals['commission_rate'] == pytest.approx(0.08)
    assert [b.id for b in summary['bookings']] == [first.id, second.id]
    assert summary['period']['due_date'] == date(2030, 7, 5)
    assert summary['bank_details']['account_number']

    record = summary['commission']
    assert record.booking_ids == [first.id, second.id]
    assert record.status == CommissionStatus.PENDING


def test_trips_still_running_are_not_counted(booking_data, driver):
    confirmed_booking(booking_data, '2030-06-28', '2030-07-02')
    june = DriverEarningsService.summarize(driver.id, '2030-06', today=AFTER_JUNE)
    july = DriverEarningsService.summarize(driver.id, '2030-07', today=date(2030, 7, 2))

    # Counted in the month the trip ends, once it has ended
    assert june['totals']['booking_count'] == 0
    assert july['totals']['booking_count'] == 0
    assert DriverEarningsService.summarize(driver.id, '2030-07', today=date(2030, 7, 3))['totals']['booking_count'] == 1


def test_summary_reuses_the_statement_and_keeps_payment_state(booking_data, driver):
    confirmed_booking(booking_data, '2030-06-03', '2030-06-05')
    record = DriverEarningsService.summarize(driver.id, '2030-06', today=AFTER_JUNE)['commission']
    DriverEarningsService.record_payment_slip(record.id, 'https://files.example.com/slips/1.pdf', 'slip.pdf', driver_id=driver.id)
    DriverEarningsService.set_status(record.id, CommissionStatus.SUBMITTED, 'Received')

    confirmed_booking(booking_data, '2030-06-20', '2030-06-21')
    again = DriverEarningsService.summarize(driver.id, '2030-06', today=AFTER_JUNE)

    assert again['commission'].id == record.id
    assert again['totals']['booking_count'] == 2
    assert again['commission'].status == CommissionStatus.SUBMITTED
    assert again['commission'].payment_slip_filename == 'slip.pdf'
    assert DriverCommission.query.count() == 1


def test_summary_reports_the_period_discount(booking_data, driver):
    CommissionDiscountService.create_discount({
        'name': 'June promo', 'discount_percent': 3, 'start_date': '2030-06-01', 'end_date': '2030-06-30',
    }, today=TODAY)
    confirmed_booking(booking_data, '2030-06-03', '2030-06-05')

    summary = DriverEarningsService.summarize(driver.id, '2030-06', today=AFTER_JUNE)

    assert summary['discount'].name == 'June promo'
    assert summary['totals']['total_commission'] == pytest.approx(75.0)
    assert summary['totals']['commission_rate'] == pytest.approx(0.05)


def test_history_lists_months_newest_first(booking_data, driver):
    confirmed_booking(booking_data, '2030-06-03', '2030-06-05')
    confirmed_booking(booking_data, '2030-08-03', '2030-08-05')

    history = DriverEarningsService.history(driver.id, today=date(2030, 9, 1))

    assert [h['period']['value'] for h in history] == ['2030-08', '2030-06']
    assert len(DriverEarningsService.history(driver.id, limit=1, today=date(2030, 9, 1))) == 1


def test_payment_slip_belongs_to_the_driver(booking_data, driver, other_driver):
    confirmed_booking(booking_data, '2030-06-03', '2030-06-05')
    record = DriverEarningsService.summarize(driver.id, '2030-06', today=AFTER_JUNE)['commission']

    with pytest.raises(NotFound):
        DriverEarningsService.record_payment_slip(record.id, 'https://files.example.com/x.pdf', driver_id=other_driver.id)
    with pytest.raises(ValidationError):
        DriverEarningsService.record_payment_slip(record.id, '   ', driver_id=driver.id)

    saved = DriverEarningsService.record_payment_slip(record.id, 'https://files.example.com/x.pdf', driver_id=driver.id)
    assert saved.payment_slip_uploaded_at is not None
    assert saved.status == CommissionStatus.PENDING


def test_set_status_validates(booking_data, driver):
    confirmed_booking(booking_data, '2030-06-03', '2030-06-05')
    record = DriverEarningsService.summarize(driver.id, '2030-06', today=AFTER_JUNE)['commission']

    with pytest.raises(ValidationError):
        DriverEarningsService.set_status(record.id, 'paid')
    with pytest.raises(NotFound):
        DriverEarningsService.set_status(9999, CommissionStatus.APPROVED)
    assert DriverEarningsService.set_status(record.id, CommissionStatus.APPROVED).status == CommissionStatus.APPROVED
