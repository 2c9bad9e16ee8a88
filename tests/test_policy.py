import pytest
from django.core.exceptions import ValidationError

from circulation.exceptions import InvalidSetting
from circulation.models import Setting
from circulation.policy import (
    DEFAULT_SETTINGS, LoanPolicy, borrowing_limit_for_grade, get_borrowing_days,
    get_borrowing_limit, get_max_renewals, get_overdue_grace_period,
    initialize_default_settings, validate_setting_value
)


@pytest.mark.parametrize('grade, limit', [
    (1, 1), (2, 1), (3, 1),
    (4, 2), (5, 2), (6, 2),
    (7, 5), (8, 5), (9, 5), (10, 5),
    (11, 7), (12, 7),
])
def test_grade_bands(grade, limit):
    assert borrowing_limit_for_grade(grade) == limit


@pytest.mark.parametrize('grade', [0, -1, 13])
def test_grades_outside_every_band_fall_back(grade):
    assert borrowing_limit_for_grade(grade) == 3


def test_defaults_without_any_setting(db):
    assert get_borrowing_days() == 14
    assert get_max_renewals() == 2
    assert get_overdue_grace_period() == 0
    assert get_borrowing_limit(8) == 5


def test_stored_settings_override_defaults(db):
    Setting.objects.create(key='borrowingDays', value=7)
    Setting.objects.create(key='maxRenewals', value=0)
    Setting.objects.create(key='borrowingLimits', value={'1-3': 2, '4-6': 3, '7-10': 4, '11-12': 6})

    policy = LoanPolicy.load()
    assert policy.borrowing_days == 7
    assert policy.max_renewals == 0
    assert policy.borrowing_limit(2) == 2
    assert policy.borrowing_limit(12) == 6
    assert policy.borrowing_limit(13) == 3


def test_malformed_stored_value_is_ignored(db, caplog):
    # Written around validation, e.g. straight into the table
    Setting.objects.create(key='borrowingDays', value='two weeks')
    Setting.objects.create(key='borrowingLimits', value={'1-3': 1})

    policy = LoanPolicy.load()
    assert policy.borrowing_days == 14
    assert policy.borrowing_limit(5) == 2
    assert 'Ignoring stored setting borrowingDays' in caplog.text


@pytest.mark.parametrize('key, value', [
    ('borrowingDays', 0),
    ('borrowingDays', 3.5),
    ('borrowingDays', True),
    ('maxRenewals', -1),
    ('overdueGracePeriod', '2'),
    ('borrowingLimits', [1, 2, 5, 7]),
    ('borrowingLimits', {'1-3': 1, '4-6': 2, '7-10': 5}),
    ('borrowingLimits', {'1-3': 1, '4-6': 2, '7-10': 5, '11-12': -7}),
    ('borrowingLimits', {'1-3': 1, '4-6': 2, '7-10': 5, '11-12': 7, '13-14': 9}),
])
def test_invalid_values_are_rejected(key, value):
    with pytest.raises(InvalidSetting) as excinfo:
        validate_setting_value(key, value)
    assert excinfo.value.code == 'INVALID_SETTING'
    assert excinfo.value.details == {'key': key}


def test_informational_keys_are_stored_as_given():
    assert validate_setting_value('schoolName', 'Rizal High') == 'Rizal High'
    assert validate_setting_value('maxRenewals', 0) == 0


def test_setting_clean_rejects_bad_policy(db):
    setting = Setting(key='maxRenewals', value=-2)
    with pytest.raises(ValidationError):
        setting.full_clean()


def test_initialize_default_settings_is_idempotent(db):
    Setting.objects.create(key='borrowingDays', value=10)

    created = initialize_default_settings()
    assert created == len(DEFAULT_SETTINGS) - 1
    assert Setting.objects.get(key='borrowingDays').value == 10
    assert initialize_default_settings() == 0
