from app.models.assumption import Assumption
from app.models.audit import AuditLog
from app.models.category import FarmCategory
from app.models.enums import CategoryType, LocationType, MonthlyDataType, RoleName
from app.models.farm import Farm, UserFarmRole
from app.models.gl import GlAccount, GlActualDetail
from app.models.inventory import CommodityConversion, InventoryBin, InventoryLocation, InventorySnapshot
from app.models.monthly import MonthlyData, MonthlyDataFrozen
from app.models.user import User

__all__ = [
    "Assumption",
    "AuditLog",
    "FarmCategory",
    "CategoryType",
    "LocationType",
    "MonthlyDataType",
    "RoleName",
    "Farm",
    "UserFarmRole",
    "GlAccount",
    "GlActualDetail",
    "CommodityConversion",
    "InventoryBin",
    "InventoryLocation",
    "InventorySnapshot",
    "MonthlyData",
    "MonthlyDataFrozen",
    "User",
]
