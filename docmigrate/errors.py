"""Exceptions raised by the migration engine."""


class MigrationError(Exception):
    """Base class for all migration engine errors."""


class ConfigurationError(MigrationError):
    """Missing credentials, missing plan or invalid tunables."""


class StoreConnectionError(MigrationError):
    """The source or target store could not be reached."""


class DDLError(MigrationError):
    """A target table could not be created."""

    def __init__(self, table_name: str, statement: str, message: str):
        super().__init__(f"Failed to create target table {table_name}: {message}")
        self.table_name = table_name
        self.statement = statement


class BatchProcessingError(MigrationError):
    """Transcoding or writing a batch failed."""


class ProducerError(MigrationError):
    """Reading from the source cursor failed."""

    def __init__(self, collection: str, message: str):
        super().__init__(f"Producer failed for collection {collection}: {message}")
        self.collection = collection


class QueueClosedError(MigrationError):
    """A batch was offered to a queue that has already been closed."""
