"""
Domain exceptions - Semantic error types raised by infrastructure.

Business-rule failures (duplicate email, weak password, code mismatch,
unknown user) are returned as StepError values by the workflow. The
exceptions below are for the unexpected: adapters wrap driver errors in
them so the domain never sees psycopg or smtplib types.
"""


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    pass


class PersistenceError(RegistrationError):
    """The user or household store failed to read or write."""

    pass


class DuplicateEmail(PersistenceError):
    """The store's unique constraint on email rejected a create."""

    pass


class DeliveryFailed(RegistrationError):
    """The mail service could not hand a message off for delivery."""

    pass
