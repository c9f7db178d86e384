# Services package initialization
# This file makes the services directory a Python package
# and allows importing service modules

from . import appointment_service
from . import conflict_detector
from . import deletion_coordinator
from . import eligibility_service
from . import ledger_report_service
from . import ledger_writer
from . import revenue_engine
from . import schedule_policy

__all__ = [
    "appointment_service",
    "conflict_detector",
    "deletion_coordinator",
    "eligibility_service",
    "ledger_report_service",
    "ledger_writer",
    "revenue_engine",
    "schedule_policy",
]
