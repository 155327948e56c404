from django.test import TestCase, override_settings

from academics.models import Level
from gradebooks.exceptions import Fatal, InvalidArgument, TransactionUnsupported
from gradebooks.services.unit_of_work import AtomicUnitOfWork
from gradebooks.tests.fixtures import FORCE_COMPENSATING


def _create_level(name, order):
    return lambda: Level.objects.create(name=name, order=order)


def _delete_level(captured, level):
    Level.objects.filter(pk=level.pk).delete()


class NativeUnitOfWorkTests(TestCase):
    def test_all_steps_commit_together(self):
        uow = AtomicUnitOfWork('test')
        uow.add('ps', _create_level('PS', 1), undo=_delete_level)
        uow.add('ms', _create_level('MS', 2), undo=_delete_level)
        results = uow.run()
        self.assertTrue(uow.used_transaction)
        self.assertEqual(results['ms'].name, 'MS')
        self.assertEqual(Level.objects.count(), 2)

    def test_failure_rolls_back_and_surfaces_fatal(self):
        def boom():
            raise RuntimeError('UNIQUE constraint failed: secret_table.column')

        uow = AtomicUnitOfWork('test')
        uow.add('ps', _create_level('PS', 1))
        uow.add('boom', boom)
        with self.assertRaises(Fatal) as ctx:
            uow.run()
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)
        self.assertNotIn('secret_table', ctx.exception.message)
        self.assertNotIn('secret_table', str(ctx.exception.as_dict()))
        self.assertEqual(Level.objects.count(), 0)

    def test_workflow_errors_propagate_unchanged(self):
        def reject():
            raise InvalidArgument('nope')

        uow = AtomicUnitOfWork('test')
        uow.add('ps', _create_level('PS', 1))
        uow.add('reject', reject)
        with self.assertRaises(InvalidArgument):
            uow.run()
        self.assertEqual(Level.objects.count(), 0)

    def test_unsupported_mid_transaction_retries_once_without_transaction(self):
        calls = []

        def flaky():
            calls.append('flaky')
            if len(calls) == 1:
                raise TransactionUnsupported()
            return 'ok'

        uow = AtomicUnitOfWork('test')
        uow.add('ps', _create_level('PS', 1), undo=_delete_level)
        uow.add('flaky', flaky)
        results = uow.run()
        self.assertFalse(uow.used_transaction)
        self.assertEqual(results['flaky'], 'ok')
        self.assertEqual(len(calls), 2)
        self.assertEqual(Level.objects.count(), 1)

    def test_duplicate_step_names_are_rejected(self):
        uow = AtomicUnitOfWork('test')
        uow.add('ps', _create_level('PS', 1))
        with self.assertRaises(ValueError):
            uow.add('ps', _create_level('MS', 2))


@override_settings(GRADEBOOK_WORKFLOW=FORCE_COMPENSATING)
class CompensatingUnitOfWorkTests(TestCase):
    def test_success_runs_every_step(self):
        uow = AtomicUnitOfWork('test')
        uow.add('ps', _create_level('PS', 1), undo=_delete_level)
        uow.add('ms', _create_level('MS', 2), undo=_delete_level)
        uow.run()
        self.assertFalse(uow.used_transaction)
        self.assertEqual(Level.objects.count(), 2)

    def test_failure_undoes_applied_steps_in_reverse_order(self):
        undone = []

        def undo(name):
            def _undo(captured, level):
                undone.append((name, captured))
                Level.objects.filter(pk=level.pk).delete()
            return _undo

        def boom():
            raise RuntimeError('boom')

        uow = AtomicUnitOfWork('test')
        uow.add('ps', _create_level('PS', 1), undo=undo('ps'), capture=lambda: 'before-ps')
        uow.add('ms', _create_level('MS', 2), undo=undo('ms'), capture=lambda: 'before-ms')
        uow.add('boom', boom, undo=undo('boom'))
        with self.assertRaises(Fatal):
            uow.run()
        self.assertEqual(undone, [('ms', 'before-ms'), ('ps', 'before-ps')])
        self.assertEqual(Level.objects.count(), 0)

    def test_undo_failure_is_logged_and_original_error_kept(self):
        def broken_undo(captured, level):
            raise ValueError('undo failed')

        def boom():
            raise RuntimeError('original')

        uow = AtomicUnitOfWork('test')
        uow.add('ps', _create_level('PS', 1), undo=_delete_level)
        uow.add('ms', _create_level('MS', 2), undo=broken_undo)
        uow.add('boom', boom)
        with self.assertLogs('gradebooks.services.unit_of_work', level='ERROR') as logs:
            with self.assertRaises(Fatal) as ctx:
                uow.run()
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)
        self.assertTrue(any("undo of step 'ms' failed" in line for line in logs.output))
        # the step before the broken undo was still compensated
        self.assertEqual(list(Level.objects.values_list('name', flat=True)), ['MS'])

    def test_cancellation_is_compensated_and_reraised(self):
        def interrupted():
            raise KeyboardInterrupt()

        uow = AtomicUnitOfWork('test')
        uow.add('ps', _create_level('PS', 1), undo=_delete_level)
        uow.add('interrupted', interrupted)
        with self.assertRaises(KeyboardInterrupt):
            uow.run()
        self.assertEqual(Level.objects.count(), 0)
