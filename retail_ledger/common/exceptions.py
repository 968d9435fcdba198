"""
Ledger error taxonomy.

Input validation problems are raised as plain ValueError by the services and
become HTTP 400 in the routers. The classes below cover the remaining cases
and carry their own status code for the registered exception handlers.
"""


class LedgerError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RecordNotFoundError(LedgerError):
    status_code = 404

    def __init__(self, entity: str, record_id):
        super().__init__(f"{entity} {record_id} not found")
        self.entity = entity
        self.record_id = record_id


class PostingFailedError(LedgerError):
    """A store write failed; the whole posting unit was rolled back."""
    status_code = 500


class ConcurrentUpdateError(PostingFailedError):
    """The customer row changed between read and balance update."""
    status_code = 409
