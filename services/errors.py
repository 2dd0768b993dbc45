class DelphiError(Exception):
    """Base class for errors raised by the service layer."""


class AdapterFailure(DelphiError):
    """An external collaborator failed (transport, status or parse error)."""


class ValidationError(DelphiError):
    """A request is missing required fields; rejected, never retried."""


class ConfigurationError(DelphiError):
    """A collaborator required for the operation is not configured."""
