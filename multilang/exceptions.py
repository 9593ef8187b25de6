"""
Error kinds raised by the storage and cache core.

Provisioning and schema failures propagate to whatever triggered the reload.
Teardown failures are logged by the component that hit them and never raised
across the shutdown boundary.
"""


class MultiLangError(Exception):
    """Base exception for locale directory errors."""

    pass


class ConfigurationError(MultiLangError):
    """Unknown storage backend, missing required setting, or null connection."""

    pass


class ReloadInProgressError(MultiLangError):
    """A reload was requested while another one is still in flight."""

    pass


class ProvisioningError(MultiLangError):
    """Storage backend could not be installed (I/O failure, refused connection, missing driver)."""

    pass


class StorageUnavailableError(ProvisioningError):
    """Networked storage is failing fast after repeated errors (circuit open)."""

    pass


class SchemaError(MultiLangError):
    """Table or column creation failed."""

    pass


class NotReadyError(MultiLangError):
    """Read or write attempted before a storage backend finished installing."""

    pass


class DatabaseClosedError(MultiLangError):
    """The database manager was used after close()."""

    pass


class TeardownError(MultiLangError):
    """Closing a connection or cleaning cache files failed."""

    pass
