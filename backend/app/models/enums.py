import enum


class RoleName(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    viewer = "viewer"


class MonthlyDataType(str, enum.Enum):
    per_unit = "per_unit"
    accounting = "accounting"


class CategoryType(str, enum.Enum):
    revenue = "REVENUE"
    input = "INPUT"
    lpm = "LPM"
    lbf = "LBF"
    insurance = "INSURANCE"


class LocationType(str, enum.Enum):
    production = "production"
    transit = "transit"
    satellite = "satellite"
