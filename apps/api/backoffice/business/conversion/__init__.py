from backoffice.business.conversion.api import router
from backoffice.business.conversion.service import (
    ConversionService,
    LeadConversionResult,
    ProjectConversionResult,
    conversion_service,
)

__all__ = [
    "router",
    "ConversionService",
    "LeadConversionResult",
    "ProjectConversionResult",
    "conversion_service",
]
