class IngestionError(Exception):
    """Base class for errors raised by the import pipeline."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class WrongTemplateError(IngestionError):
    pass


class EmptyFileError(IngestionError):
    pass


class SpreadsheetReadError(IngestionError):
    status_code = 500


class TransientPersistenceError(IngestionError):
    status_code = 500


class JobNotFoundError(IngestionError):
    status_code = 404

    def __init__(self, job_id: str):
        super().__init__("Job not found")
        self.job_id = job_id
