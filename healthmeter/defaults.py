"""Default settings for a new organization."""

DEFAULT_OPEN_HOURS = {
    "mon": 0.0,
    "tue": 8.0,
    "wed": 8.0,
    "thu": 8.0,
    "fri": 8.0,
    "sat": 8.0,
    "sun": 5.0,
}

DEFAULT_SETTINGS = {
    "target_cogs_pct": 0.35,
    "target_fees_pct": 0.03,
    "monthly_fixed_nut": 15500.0,
    "monthly_roof_fund": 0.0,
    "monthly_owner_draw_goal": 0.0,
    "open_hours": dict(DEFAULT_OPEN_HOURS),
    "store_close_hour": 16,
    "enable_true_health": True,
    "enable_spreading": True,
    "year_start_cash_amount": None,
    "year_start_cash_date": None,
    "operating_floor_cash": 0.0,
    "target_reserve_cash": 100000.0,
    "business_start_date": None,
}

# Stored API field names for settings keys that differ from the snake_case form.
SETTINGS_KEY_ALIASES = {
    "targetCogsPct": "target_cogs_pct",
    "targetFeesPct": "target_fees_pct",
    "monthlyFixedNut": "monthly_fixed_nut",
    "monthlyRoofFund": "monthly_roof_fund",
    "monthlyOwnerDrawGoal": "monthly_owner_draw_goal",
    "openHoursTemplate": "open_hours",
    "open_hours_template": "open_hours",
    "storeCloseHour": "store_close_hour",
    "enableTrueHealth": "enable_true_health",
    "enableSpreading": "enable_spreading",
    "yearStartCashAmount": "year_start_cash_amount",
    "yearStartCashDate": "year_start_cash_date",
    "operatingFloorCash": "operating_floor_cash",
    "targetReserveCash": "target_reserve_cash",
    "businessStartDate": "business_start_date",
}
