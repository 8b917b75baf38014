# errors.py
"""
Typed workflow errors.

Every error raised by a workflow is deterministic and caller-facing: it is
never retried by the engine. The HTTP layer renders them with ``to_dict()``
and ``status_code``.
"""


class WorkflowError(Exception):
    """Base class for caller-facing workflow errors."""

    status_code = 400
    error_code = 'workflow_error'
    default_message = 'Workflow error'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        result = {
            'success': False,
            'message': self.message,
            'error_code': self.error_code
        }
        if self.details:
            result['details'] = self.details
        return result


class NotFoundError(WorkflowError):
    status_code = 404
    error_code = 'not_found'
    default_message = 'Resource not found'


class ForbiddenError(WorkflowError):
    status_code = 403
    error_code = 'forbidden'
    default_message = 'Operation not permitted for this user'


class InvalidSequenceError(WorkflowError):
    status_code = 409
    error_code = 'invalid_sequence'
    default_message = 'Step attempted out of order'


class InvalidStatusError(WorkflowError):
    status_code = 400
    error_code = 'invalid_status'
    default_message = 'Decision is not valid for this step'


class AlreadyProcessedError(WorkflowError):
    status_code = 409
    error_code = 'already_processed'
    default_message = 'Record has already been processed'


class AlreadyMarkedError(WorkflowError):
    status_code = 409
    error_code = 'already_marked'
    default_message = 'Attendance already marked for this date'


class AllAlreadyMarkedError(WorkflowError):
    status_code = 409
    error_code = 'all_already_marked'
    default_message = 'Attendance already marked for all students'


class NoStudentsError(WorkflowError):
    status_code = 400
    error_code = 'no_students'
    default_message = 'No enrolled students found'


class NotEnrolledError(WorkflowError):
    status_code = 400
    error_code = 'not_enrolled'
    default_message = 'Student is not enrolled in this batch'


class NoBatchAvailableError(WorkflowError):
    status_code = 422
    error_code = 'no_batch_available'
    default_message = 'No batch with free capacity is available for this course'


class DuplicateTransactionError(WorkflowError):
    status_code = 409
    error_code = 'duplicate_transaction'
    default_message = 'Payment with this transaction ID already exists'


class CapacityExceededError(WorkflowError):
    status_code = 409
    error_code = 'capacity_exceeded'
    default_message = 'Batch is already full'


class AlreadyEnrolledError(WorkflowError):
    status_code = 409
    error_code = 'already_enrolled'
    default_message = 'Student is already enrolled in this batch'


class ValidationError(WorkflowError):
    status_code = 400
    error_code = 'validation_error'
    default_message = 'Invalid request data'
