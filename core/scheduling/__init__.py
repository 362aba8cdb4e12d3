"""
Schedule generation and export (pure functions, no database access).
"""
from core.scheduling.csv_export import CSV_HEADERS, WEEKDAY_NAMES_SV, export_csv, safe_file_name
from core.scheduling.generator import (
    DEFAULT_MAX_CONSECUTIVE_DAYS,
    GeneratedShift,
    GenerationResult,
    MinStaffing,
    PharmacyHours,
    Requirement,
    Rules,
    StaffMember,
    day_of_week,
    generate_schedule,
)

__all__ = [
    "CSV_HEADERS",
    "WEEKDAY_NAMES_SV",
    "export_csv",
    "safe_file_name",
    "DEFAULT_MAX_CONSECUTIVE_DAYS",
    "GeneratedShift",
    "GenerationResult",
    "MinStaffing",
    "PharmacyHours",
    "Requirement",
    "Rules",
    "StaffMember",
    "day_of_week",
    "generate_schedule",
]
