from __future__ import annotations

import unittest
from datetime import date, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

from piecework.services.week_service import WEDNESDAY, bucket_for
from piecework.services.worker_profile_service import (
    create_profile,
    filter_history,
    salary_week_dates,
    search_profiles,
)

IST = ZoneInfo('Asia/Kolkata')


class ProfileValidationTests(unittest.TestCase):
    @patch('piecework.services.worker_profile_service._name_taken', return_value=False)
    def test_phone_must_be_ten_digits(self, _name_taken_mock) -> None:
        db = MagicMock()
        for phone in ('12345', '98765432101', '98765abcde'):
            with self.assertRaisesRegex(ValueError, 'Enter a valid 10-digit phone number'):
                create_profile(db, name='Ravi', phone_number=phone)
        with self.assertRaisesRegex(ValueError, 'Phone number is required'):
            create_profile(db, name='Ravi', phone_number=' ')
        db.add.assert_not_called()

    @patch('piecework.services.worker_profile_service._name_taken', return_value=True)
    def test_duplicate_name_rejected(self, _name_taken_mock) -> None:
        with self.assertRaisesRegex(ValueError, 'A worker with this name already exists'):
            create_profile(MagicMock(), name='Ravi', phone_number='9876543210')

    @patch('piecework.services.worker_profile_service._name_taken', return_value=False)
    def test_create_trims_fields(self, _name_taken_mock) -> None:
        db = MagicMock()
        profile = create_profile(db, name=' Ravi ', phone_number=' 9876543210 ')
        self.assertEqual(profile.name, 'Ravi')
        self.assertEqual(profile.phone_number, '9876543210')
        db.add.assert_called_once_with(profile)


class ProfileSearchTests(unittest.TestCase):
    def test_matches_name_or_phone(self) -> None:
        profiles = [
            SimpleNamespace(name='Ravi Kumar', phone_number='9876543210'),
            SimpleNamespace(name='Sita', phone_number='9000000001'),
        ]
        self.assertEqual([p.name for p in search_profiles(profiles, 'ravi')], ['Ravi Kumar'])
        self.assertEqual([p.name for p in search_profiles(profiles, '0001')], ['Sita'])
        self.assertEqual(len(search_profiles(profiles, '')), 2)


class SalaryHistoryTests(unittest.TestCase):
    def test_week_dates_follow_wednesday_anchor(self) -> None:
        self.assertEqual(salary_week_dates(date(2024, 1, 9), WEDNESDAY), (date(2024, 1, 3), date(2024, 1, 9)))
        self.assertEqual(salary_week_dates(date(2024, 1, 10), WEDNESDAY), (date(2024, 1, 10), date(2024, 1, 16)))

    def test_filter_history_by_overlap(self) -> None:
        rows = [
            SimpleNamespace(week_start_date=date(2024, 1, 10), week_end_date=date(2024, 1, 16)),
            SimpleNamespace(week_start_date=date(2024, 1, 3), week_end_date=date(2024, 1, 9)),
        ]
        bucket = bucket_for(datetime(2024, 1, 12, tzinfo=IST), WEDNESDAY, tz=IST)
        self.assertEqual(filter_history(rows, bucket), rows[:1])
        self.assertEqual(filter_history(rows, None), rows)


if __name__ == '__main__':
    unittest.main()
