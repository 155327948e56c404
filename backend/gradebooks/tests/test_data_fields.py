from types import SimpleNamespace

from django.test import SimpleTestCase

from gradebooks.exceptions import InvalidArgument
from gradebooks.services import data_fields
from gradebooks.tests.fixtures import PAGES


class DataKeyTests(SimpleTestCase):
    def setUp(self):
        self.template = SimpleNamespace(pages=PAGES)

    def test_classify_key_shapes(self):
        self.assertEqual(data_fields.classify_key('language_toggle_0_1'), ('language_toggle', 0, 1, None, None))
        self.assertEqual(data_fields.classify_key('table_2_3_row_4'), ('table', 2, 3, 4, None))
        self.assertEqual(data_fields.classify_key('dropdown_7').number, 7)
        self.assertEqual(data_fields.classify_key('text_0_3').shape, 'text')
        self.assertIsNone(data_fields.classify_key('signatures'))
        self.assertIsNone(data_fields.classify_key('table_0_2'))
        self.assertIsNone(data_fields.classify_key(None))

    def test_valid_changes_pass(self):
        self.assertTrue(data_fields.validate_data_changes(self.template, {
            'dropdown_1': 'B',
            'language_toggle_0_1': [{'code': 'fr', 'active': True}, {'code': 'en', 'active': False}],
            'table_0_2_row_1': {'c0': 'x'},
            'text_0_3': 'Très bien',
        }))

    def test_dropdown_value_can_be_cleared(self):
        self.assertTrue(data_fields.validate_data_changes(self.template, {'dropdown_1': None}))

    def test_errors_are_collected_per_key(self):
        with self.assertRaises(InvalidArgument) as ctx:
            data_fields.validate_data_changes(self.template, {
                'promotions': [],
                'dropdown_1': 'Z',
                'dropdown_9': 'A',
                'language_toggle_0_1': [{'code': 'fr', 'active': True}],
                'table_0_2_row_5': {},
                'text_0_3': 'x' * 21,
                'text_0_0': 'not a text block',
                'language_toggle_3_0': [],
            })
        errors = ctx.exception.details['errors']
        self.assertEqual(errors['promotions'], 'Reserved key')
        self.assertEqual(errors['dropdown_1'], 'Value is not one of the dropdown options')
        self.assertEqual(errors['dropdown_9'], 'No dropdown with this number in the template')
        self.assertEqual(errors['language_toggle_0_1'], 'Expected 2 language items')
        self.assertEqual(errors['table_0_2_row_5'], 'Row 5 is outside the table')
        self.assertEqual(errors['text_0_3'], 'At most 20 characters')
        self.assertEqual(errors['text_0_0'], 'Block is not a text field')
        self.assertEqual(errors['language_toggle_3_0'], 'No such block in the template')

    def test_language_items_need_codes_and_boolean_state(self):
        message = data_fields.validate_data_key(
            self.template, 'language_toggle_0_1', [{'code': 'fr', 'active': 'yes'}, {'code': 'en'}],
        )
        self.assertEqual(message, 'Language item "active" must be a boolean')
        message = data_fields.validate_data_key(self.template, 'language_toggle_0_1', [{'active': True}, {'code': 'en'}])
        self.assertEqual(message, 'Each language item needs a code')
