from i2v.models.admin_settings import AdminSettings
from i2v.models.entry import Entry
from i2v.models.user import User

__all__ = ["AdminSettings", "Entry", "User"]
