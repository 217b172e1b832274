from .doctor import run_doctor_checks
from .exporter import export_orders
from .settlement import SettlementService

__all__ = ["SettlementService", "export_orders", "run_doctor_checks"]
