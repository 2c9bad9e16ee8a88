"""
Lending policy resolved from the settings table.

Each operation loads a LoanPolicy once and reads every value from it. Keys
that are absent, or whose stored value is malformed, fall back to the
defaults below so the library works before anything is configured.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict

from .exceptions import InvalidSetting

logger = logging.getLogger(__name__)

BORROWING_DAYS_KEY = 'borrowingDays'
MAX_RENEWALS_KEY = 'maxRenewals'
BORROWING_LIMITS_KEY = 'borrowingLimits'
OVERDUE_GRACE_PERIOD_KEY = 'overdueGracePeriod'

DEFAULT_BORROWING_DAYS = 14
DEFAULT_MAX_RENEWALS = 2
DEFAULT_OVERDUE_GRACE_PERIOD = 0
# Limit for grade levels outside every band (0, negative, above 12)
FALLBACK_BORROWING_LIMIT = 3

# Grade band -> (first grade, last grade)
GRADE_BANDS = {
    '1-3': (1, 3),
    '4-6': (4, 6),
    '7-10': (7, 10),
    '11-12': (11, 12),
}

DEFAULT_BORROWING_LIMITS = {
    '1-3': 1,
    '4-6': 2,
    '7-10': 5,
    '11-12': 7,
}

DEFAULT_SETTINGS = [
    (BORROWING_DAYS_KEY, DEFAULT_BORROWING_DAYS, "Default number of borrowing days"),
    (MAX_RENEWALS_KEY, DEFAULT_MAX_RENEWALS, "Maximum number of renewals allowed"),
    (BORROWING_LIMITS_KEY, DEFAULT_BORROWING_LIMITS, "Borrowing limits by grade level range"),
    (OVERDUE_GRACE_PERIOD_KEY, DEFAULT_OVERDUE_GRACE_PERIOD, "Grace period days before marking as overdue"),
    ('schoolName', "School Library", "Name of the school"),
    ('libraryName', "Library Management System", "Name of the library"),
    ('currency', "PHP", "Currency for financial tracking"),
    ('kioskTimeout', 30, "Kiosk auto-logout timeout in seconds"),
    ('accessionPrefix', "B", "Prefix for auto-generated accession numbers"),
]


def _require_int(key, value, minimum):
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidSetting(key, f"'{key}' must be a whole number.")
    if value < minimum:
        raise InvalidSetting(key, f"'{key}' must be at least {minimum}.")
    return value


def validate_setting_value(key, value):
    """
    Validate a settings value for the given key.

    Policy keys have a fixed schema; other keys are informational and stored
    as given.

    Returns:
        The validated value

    Raises:
        InvalidSetting: If the value does not fit the key's schema
    """
    if key == BORROWING_DAYS_KEY:
        return _require_int(key, value, 1)
    if key == MAX_RENEWALS_KEY:
        return _require_int(key, value, 0)
    if key == OVERDUE_GRACE_PERIOD_KEY:
        return _require_int(key, value, 0)
    if key == BORROWING_LIMITS_KEY:
        if not isinstance(value, dict):
            raise InvalidSetting(key, f"'{key}' must map grade bands to limits.")
        missing = [band for band in GRADE_BANDS if band not in value]
        unknown = [band for band in value if band not in GRADE_BANDS]
        if missing or unknown:
            raise InvalidSetting(
                key,
                f"'{key}' must define exactly the bands {', '.join(GRADE_BANDS)}."
            )
        return {band: _require_int(key, value[band], 0) for band in GRADE_BANDS}
    return value


def borrowing_limit_for_grade(grade_level, limits=None):
    """Map a grade level onto its band's limit"""
    limits = limits or DEFAULT_BORROWING_LIMITS
    for band, (first, last) in GRADE_BANDS.items():
        if first <= grade_level <= last:
            return limits[band]
    return FALLBACK_BORROWING_LIMIT


@dataclass(frozen=True)
class LoanPolicy:
    borrowing_days: int = DEFAULT_BORROWING_DAYS
    max_renewals: int = DEFAULT_MAX_RENEWALS
    overdue_grace_period: int = DEFAULT_OVERDUE_GRACE_PERIOD
    borrowing_limits: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_BORROWING_LIMITS))

    @classmethod
    def from_settings(cls, values):
        """Build a policy from a key -> value mapping, skipping bad values"""
        kwargs = {}
        for key, attr in [
            (BORROWING_DAYS_KEY, 'borrowing_days'),
            (MAX_RENEWALS_KEY, 'max_renewals'),
            (OVERDUE_GRACE_PERIOD_KEY, 'overdue_grace_period'),
            (BORROWING_LIMITS_KEY, 'borrowing_limits'),
        ]:
            if key not in values:
                continue
            try:
                kwargs[attr] = validate_setting_value(key, values[key])
            except InvalidSetting as e:
                logger.warning(f"Ignoring stored setting {key}={values[key]!r}: {e}")
        return cls(**kwargs)

    @classmethod
    def load(cls):
        from .models import Setting

        keys = [BORROWING_DAYS_KEY, MAX_RENEWALS_KEY, OVERDUE_GRACE_PERIOD_KEY, BORROWING_LIMITS_KEY]
        values = dict(Setting.objects.filter(key__in=keys).values_list('key', 'value'))
        return cls.from_settings(values)

    def borrowing_limit(self, grade_level):
        return borrowing_limit_for_grade(grade_level, self.borrowing_limits)


def get_borrowing_days():
    return LoanPolicy.load().borrowing_days


def get_max_renewals():
    return LoanPolicy.load().max_renewals


def get_overdue_grace_period():
    return LoanPolicy.load().overdue_grace_period


def get_borrowing_limit(grade_level):
    return LoanPolicy.load().borrowing_limit(grade_level)


def initialize_default_settings():
    """Store every default setting that is not configured yet"""
    from .models import Setting

    created = 0
    for key, value, description in DEFAULT_SETTINGS:
        _, was_created = Setting.objects.get_or_create(
            key=key,
            defaults={'value': value, 'description': description},
        )
        created += int(was_created)
    if created:
        logger.info(f"Initialized {created} default setting(s)")
    return created
