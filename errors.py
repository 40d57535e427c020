"""
Error types raised by the OKR tracking core.
Each error carries a message plus structured details so API layers can serialize it.
"""
from typing import Any, Dict, Optional


class OKRError(Exception):
    """Base class for all tracking errors."""

    code = 'okr_error'

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {'error': {'code': self.code, 'message': self.message, 'details': self.details}}


class NotFoundError(OKRError):
    """Unknown goal (or alert) identifier."""

    code = 'not_found'


class InvalidInputError(OKRError):
    """Caller supplied a value the core refuses to store or process."""

    code = 'invalid_input'


class InternalError(OKRError):
    code = 'internal_error'


__all__ = ['OKRError', 'NotFoundError', 'InvalidInputError', 'InternalError']
