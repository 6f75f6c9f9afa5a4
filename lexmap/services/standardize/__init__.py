from .service import StandardizationService

__all__ = ["StandardizationService"]
