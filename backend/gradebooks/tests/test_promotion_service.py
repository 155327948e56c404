from unittest import mock

from django.test import TestCase, override_settings

from academics.models import Enrollment, SchoolYear, Student
from gradebooks import models as gb_models
from gradebooks.exceptions import (
    AlreadyPromoted,
    CurrentYearUnknown,
    Fatal,
    NoNextYear,
    NotSignedByYou,
)
from gradebooks.services import promotion_service, signature_service
from gradebooks.tests.fixtures import FORCE_COMPENSATING, WorkflowFixtureMixin


class PromotionTests(WorkflowFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.complete_sem2()
        signature_service.sign(self.assignment.pk, self.supervisor, 'end_of_year', context=self.context)
        self.reload()
        self.data_before = dict(self.assignment.data)
        self.version_before = self.assignment.data_version

    def assert_nothing_promoted(self):
        self.enrollment.refresh_from_db()
        self.student.refresh_from_db()
        self.reload()
        self.assertEqual(self.enrollment.status, 'active')
        self.assertFalse(Enrollment.objects.filter(student=self.student, school_year=self.next_year).exists())
        self.assertEqual(self.student.promotions, [])
        self.assertEqual(self.student.level, 'PS')
        self.assertEqual(self.student.school_year, self.year)
        self.assertEqual(self.assignment.data, self.data_before)
        self.assertEqual(self.assignment.data_version, self.version_before)
        self.assertFalse(gb_models.SavedGradebook.objects.exists())

    def test_promote_moves_student_to_next_year(self):
        result = promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)

        self.assertTrue(result.used_transaction)
        self.enrollment.refresh_from_db()
        self.assertEqual(self.enrollment.status, 'promoted')
        self.assertEqual(self.enrollment.promotion_status, 'promoted')

        nxt = Enrollment.objects.get(student=self.student, school_year=self.next_year)
        self.assertEqual(nxt.status, 'active')
        self.assertTrue(result.created_next_enrollment)

        self.student.refresh_from_db()
        self.assertEqual(len(self.student.promotions), 1)
        entry = self.student.promotions[0]
        self.assertEqual(entry['to_level'], 'MS')
        self.assertEqual(entry['from_level'], 'PS')
        self.assertEqual(entry['school_year_id'], self.year.pk)
        self.assertEqual(entry['to_school_year_id'], self.next_year.pk)
        self.assertEqual(entry['promoted_by'], self.supervisor.pk)
        self.assertEqual(self.student.level, 'MS')
        self.assertEqual(self.student.school_year, self.next_year)

        self.reload()
        self.assertEqual(self.assignment.data_version, self.version_before + 1)
        self.assertEqual(self.assignment.data['promotions'], [entry])
        # promotion does not roll the assignment over
        self.assertEqual(self.assignment.completion_school_year, self.year)
        self.assertEqual(self.assignment.status, 'signed')

    def test_snapshot_is_a_detached_copy_of_the_pre_promotion_record(self):
        result = promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)
        snapshot = gb_models.SavedGradebook.objects.get(pk=result.snapshot.pk)
        self.assertEqual(snapshot.reason, 'promotion')
        self.assertEqual(snapshot.data['assignment']['data'], self.data_before)
        self.assertEqual(snapshot.data['assignment']['data_version'], self.version_before)
        self.assertEqual(snapshot.data['class_name'], 'PS-A')
        self.assertEqual(len(snapshot.data['signatures']), 1)
        self.assertEqual(snapshot.meta['signature_period_id'], f'{self.year.pk}_end_of_year')
        self.assertEqual(snapshot.meta['snapshot_reason'], 'promotion')
        self.assertEqual(snapshot.meta['level'], 'PS')

        gb_models.TemplateAssignment.objects.filter(pk=self.assignment.pk).update(data={'dropdown_1': 'C'})
        snapshot.refresh_from_db()
        self.assertEqual(snapshot.data['assignment']['data'], self.data_before)

    def test_snapshots_are_write_once(self):
        result = promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)
        snapshot = gb_models.SavedGradebook.objects.get(pk=result.snapshot.pk)
        snapshot.level = 'GS'
        with self.assertRaises(ValueError):
            snapshot.save()

    def test_second_promotion_is_rejected(self):
        promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)
        with self.assertRaises(AlreadyPromoted):
            promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)
        self.student.refresh_from_db()
        self.assertEqual(len(self.student.promotions), 1)
        self.assertEqual(gb_models.SavedGradebook.objects.count(), 1)

    def test_next_level_defaults_to_the_following_level(self):
        result = promotion_service.promote(self.assignment.pk, self.supervisor, context=self.context)
        self.assertEqual(result.promotion['to_level'], 'MS')

    def test_existing_next_year_enrollment_is_reused(self):
        existing = Enrollment.objects.create(student=self.student, school_year=self.next_year)
        result = promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)
        self.assertFalse(result.created_next_enrollment)
        self.assertEqual(result.next_enrollment.pk, existing.pk)
        self.assertEqual(Enrollment.objects.filter(student=self.student).count(), 2)

    def test_requires_own_end_of_year_signature(self):
        # sub2 supervises nobody and has not signed; the signature check comes first
        with self.assertRaises(NotSignedByYou):
            promotion_service.promote(self.assignment.pk, self.other, 'MS', context=self.context)
        self.assert_nothing_promoted()

    def test_no_next_year(self):
        SchoolYear.objects.filter(pk=self.next_year.pk).delete()
        with self.assertRaises(NoNextYear):
            promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)
        self.enrollment.refresh_from_db()
        self.assertEqual(self.enrollment.status, 'active')
        self.assertFalse(gb_models.SavedGradebook.objects.exists())

    def test_unknown_current_year(self):
        Enrollment.objects.filter(pk=self.enrollment.pk).delete()
        with self.assertRaises(CurrentYearUnknown):
            promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)

    def test_failure_in_student_step_rolls_everything_back(self):
        with mock.patch.object(
            Student, 'promotion_for_year', side_effect=[None, RuntimeError('student write failed')],
        ):
            with self.assertRaises(Fatal):
                promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)
        self.assert_nothing_promoted()

    def test_failure_in_assignment_step_rolls_everything_back(self):
        with mock.patch.object(promotion_service, 'conditional_update', side_effect=RuntimeError('db down')):
            with self.assertRaises(Fatal):
                promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)
        self.assert_nothing_promoted()

    @override_settings(GRADEBOOK_WORKFLOW=FORCE_COMPENSATING)
    def test_failure_without_transactions_is_compensated(self):
        with mock.patch.object(promotion_service, 'conditional_update', side_effect=RuntimeError('db down')):
            with self.assertRaises(Fatal):
                promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)
        self.assert_nothing_promoted()

    @override_settings(GRADEBOOK_WORKFLOW=FORCE_COMPENSATING)
    def test_promote_without_transactions(self):
        result = promotion_service.promote(self.assignment.pk, self.supervisor, 'MS', context=self.context)
        self.assertFalse(result.used_transaction)
        self.student.refresh_from_db()
        self.assertEqual(self.student.level, 'MS')
        self.assertEqual(gb_models.SavedGradebook.objects.count(), 1)
