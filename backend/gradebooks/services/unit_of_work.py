"""Multi-record atomic updates.

A workflow registers its steps once; `run()` executes them either inside a
native database transaction or, when the database cannot run one, as a
compensating sequence that records the pre-state of each step and undoes the
applied steps in reverse order on failure.

Each step is ``(name, apply, undo, capture)``:

* ``capture()`` runs right before ``apply`` on the compensating path and
  returns whatever ``undo`` needs to restore the pre-state;
* ``apply()`` performs exactly one write and returns its result, which is
  stored under ``name`` in the results dict;
* ``undo(captured, result)`` reverses that write.

On the native path capture/undo are never called; the transaction rollback
restores everything.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from django.db import DEFAULT_DB_ALIAS, NotSupportedError, connections, transaction

from gradebooks.conf import workflow_setting
from gradebooks.exceptions import Fatal, TransactionUnsupported, WorkflowError

logger = logging.getLogger(__name__)


@dataclass
class Step:
    name: str
    apply: Callable[[], Any]
    undo: Optional[Callable[[Any, Any], None]] = None
    capture: Optional[Callable[[], Any]] = None


def _signals_unsupported(exc: BaseException) -> bool:
    if isinstance(exc, TransactionUnsupported):
        return True
    return isinstance(exc, NotSupportedError) and 'transaction' in str(exc).lower()


class AtomicUnitOfWork:
    def __init__(self, label: str, using: Optional[str] = None):
        self.label = label
        self.using = using or DEFAULT_DB_ALIAS
        self.steps: List[Step] = []
        self.results: Dict[str, Any] = {}
        self.used_transaction: Optional[bool] = None

    def add(self, name, apply, undo=None, capture=None):
        if any(s.name == name for s in self.steps):
            raise ValueError(f'duplicate step name: {name}')
        self.steps.append(Step(name=name, apply=apply, undo=undo, capture=capture))
        return self

    def supports_transactions(self) -> bool:
        if workflow_setting('FORCE_COMPENSATING_UNIT_OF_WORK'):
            return False
        return bool(connections[self.using].features.supports_transactions)

    def run(self) -> Dict[str, Any]:
        try:
            try:
                return self._run_native()
            except TransactionUnsupported:
                logger.warning('%s: transactions unavailable, using compensating updates', self.label)
                return self._run_compensating()
        except WorkflowError:
            raise
        except Exception as exc:
            logger.exception('%s failed', self.label)
            raise Fatal() from exc

    def _run_native(self):
        if not self.supports_transactions():
            raise TransactionUnsupported()
        self.results = {}
        try:
            with transaction.atomic(using=self.using):
                for step in self.steps:
                    self.results[step.name] = step.apply()
        except Exception as exc:
            if _signals_unsupported(exc):
                # rolled back; the caller retries once without a transaction
                raise TransactionUnsupported() from exc
            raise
        self.used_transaction = True
        return self.results

    def _run_compensating(self):
        self.used_transaction = False
        self.results = {}
        applied = []
        try:
            for step in self.steps:
                captured = step.capture() if step.capture else None
                result = step.apply()
                applied.append((step, captured, result))
                self.results[step.name] = result
        except BaseException as exc:
            self._compensate(applied, exc)
            raise
        return self.results

    def _compensate(self, applied, error):
        for step, captured, result in reversed(applied):
            if step.undo is None:
                continue
            try:
                step.undo(captured, result)
            except Exception:
                logger.exception(
                    '%s: undo of step %r failed while recovering from %s',
                    self.label, step.name, type(error).__name__,
                )
