"""Error taxonomy surfaced by the ticket workflows.

Parsing and matching degrade gracefully and never raise these; the ticket
workflows (scan, review, confirm, delete) raise them so an outer surface can map
each class to a response (CLI exit code, HTTP status).
"""


class CanastaError(Exception):
    """Base class for errors a caller is expected to handle."""


class InputError(CanastaError):
    """The input could not be turned into a ticket (unreadable image, no OCR text)."""


class NotFoundError(CanastaError):
    """Unknown parser key, ticket, ticket item, store or product."""


class PermissionDeniedError(CanastaError):
    """The ticket, store or product belongs to another user."""


class ConflictError(CanastaError):
    """The operation conflicts with the current state (e.g. ticket already confirmed)."""


class ValidationError(CanastaError):
    """The request is well-formed but incomplete (missing store/date, nothing to confirm)."""


class ServiceUnavailableError(InputError):
    """An external collaborator (OCR service, image store) failed while handling the input."""
