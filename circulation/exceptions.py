"""
Error taxonomy for circulation operations.

Every rejected operation raises a subclass of CirculationError carrying a
machine-checkable reason code, a human readable message and optional details
(counts, limits, statuses) so callers can render targeted guidance.
"""


class ReasonCode:
    STUDENT_NOT_FOUND = 'STUDENT_NOT_FOUND'
    STUDENT_BLOCKED = 'STUDENT_BLOCKED'
    BOOK_NOT_FOUND = 'BOOK_NOT_FOUND'
    BOOK_NOT_AVAILABLE = 'BOOK_NOT_AVAILABLE'
    LIMIT_REACHED = 'LIMIT_REACHED'
    HAS_OVERDUE = 'HAS_OVERDUE'
    NO_ACTIVE_LOAN = 'NO_ACTIVE_LOAN'
    NOT_FOUND = 'NOT_FOUND'
    ALREADY_RETURNED = 'ALREADY_RETURNED'
    MAX_RENEWALS_REACHED = 'MAX_RENEWALS_REACHED'
    CANNOT_RENEW_OVERDUE = 'CANNOT_RENEW_OVERDUE'
    INVALID_SETTING = 'INVALID_SETTING'
    INVALID_STATUS = 'INVALID_STATUS'
    HAS_ACTIVE_LOANS = 'HAS_ACTIVE_LOANS'


class CirculationError(Exception):
    """Base class for all synchronous rejections"""
    status_code = 400

    def __init__(self, code, message, **details):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    def as_dict(self):
        return {'error': self.message, 'code': self.code, **self.details}


class NotFound(CirculationError):
    """Student, book or loan does not exist"""
    status_code = 404


class PolicyViolation(CirculationError):
    """A lending rule rejected the operation"""
    status_code = 409


class InvalidSetting(CirculationError):
    """Malformed policy configuration"""
    status_code = 400

    def __init__(self, key, message):
        super().__init__(ReasonCode.INVALID_SETTING, message, key=key)
