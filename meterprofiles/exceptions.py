class MPError(Exception): ...


class FormatError(MPError):
    """No usable header or columns could be recovered from a file."""


class ColumnAmbiguityError(MPError):
    """No date-like column was found and no column override was supplied."""


class ProfileError(MPError):
    """A profile or readings frame breaks a structural invariant."""


class ConversionError(MPError):
    """A unit conversion was requested without the parameters it needs."""


class RepresentationMismatchError(ConversionError):
    """Percentage and raw-kW profiles were combined without reconciliation."""


class PersistenceError(MPError):
    """A single meter record failed to save."""

    def __init__(self, message: str, *, label: str = "", meter_id: str | None = None):
        super().__init__(message)
        self.label = label
        self.meter_id = meter_id


class ImportCancelled(MPError):
    """The caller asked to stop before the batch finished."""


class EmptyResultWarning(UserWarning):
    """Every parsed value was zero. Non-fatal but should be shown to the user."""


def require(condition: bool, message: str, exc: type[MPError] = MPError):
    """Raise the given exception if condition is False."""
    if not condition:
        raise exc(message)
