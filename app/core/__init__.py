"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the domain apps (ledger,
donations). No domain-specific logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Tagged result (ok / rejected / fatal)
    - ResultStatus: The three result tags
    - unit_of_work: Run a callable as one atomic database unit

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found
    - ConflictError: State conflicts
    - BusinessRuleViolation: Domain rule refused the request
    - ConfigurationError: Deployment/setup problem

Note:
    Django models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    BusinessRuleViolation,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

# Services (no Django model dependencies)
from .services import BaseService, ResultStatus, ServiceResult, unit_of_work

__all__ = [
    # Services
    "BaseService",
    "ResultStatus",
    "ServiceResult",
    "unit_of_work",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "BusinessRuleViolation",
    "ConfigurationError",
]
