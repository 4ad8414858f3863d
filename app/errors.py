"""Error taxonomy for the job lifecycle.

Every error carries the HTTP status code it maps to; the API layer renders
them as ``{"error": message}`` without exposing internal detail.
"""


class JobError(Exception):
    """Base class for lifecycle errors surfaced to clients."""

    status_code: int = 500
    default_message: str = "Processing failed."

    def __init__(self, message: str = "", job_id: str = ""):
        self.message = message or self.default_message
        self.job_id = job_id
        super().__init__(self.message)


class UploadPersistError(JobError):
    status_code = 500
    default_message = "Could not store the uploaded file."


class UploadTooLargeError(JobError):
    status_code = 413
    default_message = "File too large."


class TransformError(JobError):
    """The external transformer failed or produced no usable output.

    ``detail`` holds diagnostic output (stderr) for the log only.
    """

    status_code = 500
    default_message = "Processing failed."

    def __init__(self, message: str = "", job_id: str = "", detail: str = ""):
        super().__init__(message, job_id)
        self.detail = detail


class NotFoundError(JobError):
    status_code = 404
    default_message = "Job not found."


class NotReadyError(JobError):
    status_code = 409
    default_message = "Job is not ready yet, try again shortly."


class GoneError(JobError):
    status_code = 410
    default_message = "File is no longer available."


class JobFailedError(JobError):
    status_code = 422
    default_message = "Processing failed; this job has no file to download."


class StreamError(JobError):
    status_code = 500
    default_message = "Transfer failed."


class InvalidTransitionError(JobError):
    status_code = 500
    default_message = "Invalid job status transition."
