from carwithdriver.models.role import Role, RoleName
from carwithdriver.models.user import User
from carwithdriver.models.vehicle import Vehicle
from carwithdriver.models.vehicle_availability import VehicleAvailability, AvailabilityStatus
from carwithdriver.models.commission_discount import CommissionDiscount, DiscountStatus
from carwithdriver.models.booking import Booking, BookingStatus
from carwithdriver.models.driver_commission import DriverCommission, CommissionStatus
