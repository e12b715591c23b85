"""Task dependency, workflow automation and recurring schedule engine for asset maintenance."""

from maintenance_orchestrator.app.engine import MaintenanceEngine

__all__ = ["MaintenanceEngine"]

__version__ = "0.1.0"
