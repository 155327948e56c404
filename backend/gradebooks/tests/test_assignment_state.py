from django.test import SimpleTestCase, TestCase

from gradebooks import models as gb_models
from gradebooks.exceptions import InvalidArgument
from gradebooks.services import assignment_state, signature_service
from gradebooks.tests.fixtures import WorkflowFixtureMixin


class TransitionTableTests(SimpleTestCase):
    def test_standard_transitions(self):
        allowed = assignment_state.is_allowed
        self.assertTrue(allowed('draft', 'in_progress'))
        self.assertTrue(allowed('draft', 'completed'))
        self.assertTrue(allowed('in_progress', 'draft'))
        self.assertTrue(allowed('completed', 'signed'))
        self.assertTrue(allowed('signed', 'completed'))
        self.assertFalse(allowed('draft', 'signed'))
        self.assertFalse(allowed('in_progress', 'signed'))
        self.assertFalse(allowed('signed', 'draft'))
        self.assertFalse(allowed('signed', 'in_progress'))

    def test_non_standard_transition_is_logged(self):
        with self.assertLogs('gradebooks.services.assignment_state', level='WARNING'):
            self.assertFalse(assignment_state.check_transition('draft', 'signed', assignment_id=1))

    def test_completion_patch_normalisation(self):
        patch = assignment_state.normalize_completion_patch({'is_completed_sem1': False, 'completed_at_sem1': 'x'})
        self.assertIsNone(patch['completed_at_sem1'])

        patch = assignment_state.normalize_completion_patch({'is_completed_sem2': True}, now='NOW')
        self.assertEqual(patch['completed_at_sem2'], 'NOW')
        self.assertTrue(patch['is_completed'])
        self.assertEqual(patch['completed_at'], 'NOW')

        patch = assignment_state.normalize_completion_patch({'is_completed': False})
        self.assertIsNone(patch['completed_at'])
        self.assertIsNone(patch['completed_by_id'])


class AssignmentStateTests(WorkflowFixtureMixin, TestCase):
    def test_set_status_accepts_standard_transitions(self):
        version = assignment_state.set_status(self.assignment.pk, self.teacher, 'in_progress', expected_version=1)
        self.assertEqual(version, 2)
        self.assertEqual(self.reload().status, 'in_progress')

    def test_set_status_rejects_signing_and_illegal_moves(self):
        with self.assertRaises(InvalidArgument):
            assignment_state.set_status(self.assignment.pk, self.teacher, 'signed')
        signature_service.sign(self.assignment.pk, self.supervisor, context=self.context)
        with self.assertRaises(InvalidArgument):
            assignment_state.set_status(self.assignment.pk, self.teacher, 'draft')
        with self.assertRaises(InvalidArgument):
            assignment_state.set_status(self.assignment.pk, self.teacher, 'archived')

    def test_mark_second_semester_completes_assignment(self):
        assignment_state.mark_semester_completed(self.assignment.pk, self.teacher, 2)
        self.reload()
        self.assertTrue(self.assignment.is_completed_sem2)
        self.assertIsNotNone(self.assignment.completed_at_sem2)
        self.assertTrue(self.assignment.is_completed)
        self.assertEqual(self.assignment.completed_by, self.teacher)
        self.assertEqual(self.assignment.status, 'completed')
        self.assertEqual(self.assignment.data_version, 2)

    def test_unmarking_clears_timestamp_and_reopens(self):
        assignment_state.mark_semester_completed(self.assignment.pk, self.teacher, 1, completed=False)
        self.reload()
        self.assertFalse(self.assignment.is_completed_sem1)
        self.assertIsNone(self.assignment.completed_at_sem1)
        self.assertEqual(self.assignment.status, 'in_progress')
        change = gb_models.TemplateChangeLog.objects.get(assignment=self.assignment)
        self.assertEqual((change.key, change.before, change.after), ('is_completed_sem1', True, False))

    def test_signed_assignment_cannot_be_reopened(self):
        signature_service.sign(self.assignment.pk, self.supervisor, context=self.context)
        with self.assertRaises(InvalidArgument):
            assignment_state.mark_semester_completed(self.assignment.pk, self.teacher, 1, completed=False)

    def test_invalid_semester(self):
        with self.assertRaises(InvalidArgument):
            assignment_state.mark_semester_completed(self.assignment.pk, self.teacher, 3)
