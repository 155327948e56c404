"""Workflow error taxonomy.

Every error raised by the gradebook services derives from `WorkflowError`
and carries a stable machine-readable `code` plus an `http_status` hint for
whatever presentation layer sits in front of the services. Each one also
inherits the closest Django exception so generic framework handling keeps
working (`PermissionDenied` for authorization, `ObjectDoesNotExist` for
missing rows, `ValueError` for bad input).
"""
from django.core.exceptions import ObjectDoesNotExist, PermissionDenied


class WorkflowError(Exception):
    code = 'workflow_error'
    http_status = 400
    default_message = 'Gradebook workflow error'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def as_dict(self):
        payload = {'error': self.code, 'message': self.message}
        if self.details:
            payload['details'] = self.details
        return payload


class InvalidArgument(WorkflowError, ValueError):
    code = 'invalid_argument'
    default_message = 'Invalid argument'


class NotFound(WorkflowError, ObjectDoesNotExist):
    code = 'not_found'
    http_status = 404
    default_message = 'Not found'


class Conflict(WorkflowError):
    """The record changed since the caller read it.

    `current` is the serialized current record (including its
    `data_version`) so the caller can merge and retry.
    """
    code = 'conflict'
    http_status = 409
    default_message = 'The assignment was modified by someone else'

    def __init__(self, message=None, current=None, current_version=None, **details):
        self.current = current
        self.current_version = current_version
        super().__init__(message, **details)

    def as_dict(self):
        payload = super().as_dict()
        payload['current_data_version'] = self.current_version
        payload['current'] = self.current
        return payload


class AlreadySigned(WorkflowError):
    code = 'already_signed'
    default_message = 'Already signed for this period'

    def __init__(self, message=None, existing=None, **details):
        self.existing = existing
        if existing is not None:
            details.setdefault('signature_id', existing.pk)
            details.setdefault('signed_by', existing.signed_by_id)
        super().__init__(message, **details)


class NotCompletedSem1(WorkflowError):
    code = 'not_completed_sem1'
    default_message = 'The first semester is not completed'


class NotCompletedSem2(WorkflowError):
    code = 'not_completed_sem2'
    default_message = 'The second semester is not completed'


class NotAuthorized(WorkflowError, PermissionDenied):
    code = 'not_authorized'
    http_status = 403
    default_message = 'Not authorized for this student'


class NotSignedByYou(WorkflowError, PermissionDenied):
    code = 'not_signed_by_you'
    http_status = 403
    default_message = 'An end-of-year signature by you is required before promoting'


class AlreadyPromoted(WorkflowError):
    code = 'already_promoted'
    default_message = 'Student already promoted this year'


class CurrentYearUnknown(WorkflowError):
    code = 'current_year_unknown'
    default_message = 'Could not determine the current school year'


class NoNextYear(WorkflowError):
    code = 'no_next_year'
    default_message = 'No next school year is configured'


class TransactionUnsupported(WorkflowError):
    """Internal signal: the backend cannot run a multi-record transaction."""
    code = 'transaction_unsupported'
    http_status = 500
    default_message = 'Transactions are not supported by this database'


class Fatal(WorkflowError):
    """Unexpected failure. The original exception is kept as `__cause__`;
    its text is never exposed in the message."""
    code = 'fatal'
    http_status = 500
    default_message = 'Internal error while updating the gradebook'
