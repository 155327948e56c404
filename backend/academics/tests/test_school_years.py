from datetime import date

from django.test import SimpleTestCase, TestCase

from academics.models import Level, SchoolYear
from academics.services import school_years


class NextYearNameTests(SimpleTestCase):
    def test_bumps_both_years_and_keeps_separator(self):
        self.assertEqual(school_years.next_year_name('2024-2025'), '2025-2026')
        self.assertEqual(school_years.next_year_name('2024/2025'), '2025/2026')
        self.assertEqual(school_years.next_year_name('Année 2024.2025'), 'Année 2025.2026')

    def test_names_without_a_range(self):
        self.assertIsNone(school_years.next_year_name('Current'))
        self.assertIsNone(school_years.next_year_name(''))


class ResolveNextSchoolYearTests(TestCase):
    def test_sequence_wins(self):
        year = SchoolYear.objects.create(name='2024-2025', sequence=4)
        SchoolYear.objects.create(name='2025-2026', sequence=9)
        by_sequence = SchoolYear.objects.create(name='Pilot year', sequence=5)
        self.assertEqual(school_years.resolve_next_school_year(year), by_sequence)

    def test_name_is_used_without_sequence(self):
        year = SchoolYear.objects.create(name='2024-2025', end_date=date(2025, 7, 4))
        SchoolYear.objects.create(name='Summer', start_date=date(2025, 7, 10))
        by_name = SchoolYear.objects.create(name='2025-2026', start_date=date(2025, 9, 1))
        self.assertEqual(school_years.resolve_next_school_year(year), by_name)

    def test_dates_are_the_last_resort(self):
        year = SchoolYear.objects.create(name='Year A', end_date=date(2025, 7, 4))
        SchoolYear.objects.create(name='Year C', start_date=date(2026, 9, 1))
        later = SchoolYear.objects.create(name='Year B', start_date=date(2025, 9, 1))
        SchoolYear.objects.create(name='Year 0', start_date=date(2024, 9, 1))
        self.assertEqual(school_years.resolve_next_school_year(year), later)

    def test_no_next_year(self):
        year = SchoolYear.objects.create(name='2024-2025', sequence=1, end_date=date(2025, 7, 4))
        self.assertIsNone(school_years.resolve_next_school_year(year))
        self.assertIsNone(school_years.resolve_next_school_year(None))


class ActiveContextTests(TestCase):
    def test_no_active_year(self):
        SchoolYear.objects.create(name='2024-2025')
        self.assertIsNone(school_years.get_active_context())

    def test_context_from_active_year(self):
        year = SchoolYear.objects.create(
            name='2024-2025', start_date=date(2024, 9, 2), is_active=True, active_semester=2,
        )
        context = school_years.get_active_context()
        self.assertEqual(context.school_year_id, year.pk)
        self.assertEqual(context.name, '2024-2025')
        self.assertEqual(context.active_semester, 2)
        self.assertEqual(context.start_date, date(2024, 9, 2))

    def test_unexpected_semester_falls_back_to_first(self):
        year = SchoolYear.objects.create(name='2024-2025', active_semester=7)
        self.assertEqual(school_years.SchoolYearContext.from_school_year(year).active_semester, 1)


class SuggestNextLevelTests(TestCase):
    def test_level_table_is_preferred(self):
        Level.objects.create(name='PS', order=1)
        Level.objects.create(name='MS', order=2)
        Level.objects.create(name='GS', order=3, is_exit_level=True)
        self.assertEqual(school_years.suggest_next_level('ps'), 'MS')
        self.assertIsNone(school_years.suggest_next_level('GS'))

    def test_legacy_chain_fallback(self):
        self.assertEqual(school_years.suggest_next_level('KG2'), 'KG3')
        self.assertEqual(school_years.suggest_next_level(' gs '), 'EB1')
        self.assertIsNone(school_years.suggest_next_level('EB5'))
        self.assertIsNone(school_years.suggest_next_level(''))
