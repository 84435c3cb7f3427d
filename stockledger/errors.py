class StockLedgerError(Exception):
    """Base class for errors raised by stockledger."""


class StorageError(StockLedgerError):
    """The database could not be read or written."""


class DatabaseUnavailableError(StorageError):
    """The database file cannot be opened."""
