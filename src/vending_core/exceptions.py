"""Domain-specific exceptions for Vending Sales Core.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from VendingCoreError for easy catching.
"""


class VendingCoreError(Exception):
    """Base exception for all Vending Sales Core errors.

    Users can catch this exception to handle any error raised by the package.
    """

    pass


class ConfigError(VendingCoreError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Invalid configuration values are provided
    - Required configuration is missing
    - The machine registry file cannot be loaded or parsed
    """

    pass


class NoMachinesError(ConfigError):
    """Raised when an aggregate request has no machine to read from.

    This is the "nothing configured" outcome: no machines are registered, or
    the machine filter does not match any registered machine. It is kept
    distinct from an empty aggregate, which means "nothing sold".
    """

    pass


class DataQualityError(VendingCoreError):
    """Raised when data quality checks cannot run.

    Reconciliation raises it when a record set holds items that are not
    normalized sale records, so the two sides cannot be matched by key.
    """

    pass


class PipelineError(VendingCoreError):
    """Raised when a pipeline stage fails.

    Fetch and conversion failures are normally recovered inside the pipeline;
    these exceptions only cross the public boundary from the low-level
    helpers that are documented to raise them.
    """

    pass


class ExtractionError(PipelineError):
    """Raised when reading from a data source fails.

    This exception is raised when:
    - Network connection to the vendor API or the persisted store fails
    - Authentication fails
    - A source returns an unexpected response
    """

    pass


class TimeConversionError(PipelineError):
    """Raised when a vendor timestamp cannot be placed on the business calendar."""

    pass
