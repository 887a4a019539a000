from app.models.user import User
from app.models.app_client import App, AppPermission
from app.models.set import Set, SetValue
from app.models.lookup import Lookup, LookupValue
from app.models.data_warning import DataWarning, WarningSeverity

__all__ = [
    "User",
    "App",
    "AppPermission",
    "Set",
    "SetValue",
    "Lookup",
    "LookupValue",
    "DataWarning",
    "WarningSeverity",
]
