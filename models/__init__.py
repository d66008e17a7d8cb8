from extensions import db
from .user import User, Role
from .slot import DailySlot
from .booking import Booking

__all__ = ["db", "User", "Role", "DailySlot", "Booking"]
