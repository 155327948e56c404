from django.test import SimpleTestCase

from gradebooks.exceptions import InvalidArgument
from gradebooks.services import period_identity as pi


class SignaturePeriodIdTests(SimpleTestCase):
    def test_round_trip_for_every_period_type(self):
        for year_id in ('12', 'abc', 'y_2024', 'x_sem1', 'x_end'):
            for period_type in pi.PERIOD_TYPES:
                period_id = pi.compute_signature_period_id(year_id, period_type)
                parsed = pi.parse_signature_period_id(period_id)
                self.assertEqual(parsed, (year_id, period_type), period_id)

    def test_integer_year_ids_are_stringified(self):
        self.assertEqual(pi.compute_signature_period_id(7, pi.SEM2), '7_sem2')
        self.assertEqual(pi.parse_signature_period_id('7_sem2').school_year_id, '7')

    def test_distinct_periods_give_distinct_ids(self):
        ids = {
            pi.compute_signature_period_id(year_id, period_type)
            for year_id in ('1', '2', '10')
            for period_type in pi.PERIOD_TYPES
        }
        self.assertEqual(len(ids), 9)

    def test_empty_school_year_is_rejected(self):
        for bad in (None, '', '   '):
            with self.assertRaises(InvalidArgument):
                pi.compute_signature_period_id(bad, pi.SEM1)

    def test_unknown_period_type_is_rejected(self):
        with self.assertRaises(InvalidArgument):
            pi.compute_signature_period_id('1', 'sem3')

    def test_unparseable_ids_give_none(self):
        for bad in (None, '', 'garbage', '_sem1', 'sem1', '2024_semester', 42):
            self.assertIsNone(pi.parse_signature_period_id(bad), bad)

    def test_period_type_follows_signature_type_and_semester(self):
        self.assertEqual(pi.period_type_for('end_of_year', 1), pi.END_OF_YEAR)
        self.assertEqual(pi.period_type_for('end_of_year', 2), pi.END_OF_YEAR)
        self.assertEqual(pi.period_type_for('standard', 1), pi.SEM1)
        self.assertEqual(pi.period_type_for('standard', 2), pi.SEM2)
        self.assertEqual(pi.period_type_for('standard', '2'), pi.SEM2)
