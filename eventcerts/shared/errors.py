class CertificateError(Exception):
    """Base class for certificate issuance and rendering failures."""


class ConfigurationError(CertificateError, ValueError):
    """A layout configuration field is malformed."""


class CertificateNumberConflict(ConfigurationError):
    """The formatted certificate number is already owned by another event."""


class StorageUnavailableError(CertificateError):
    """The counter/record store could not complete an increment or insert."""
