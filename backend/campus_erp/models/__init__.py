from campus_erp.models.storage_entry import StorageEntry

__all__ = ["StorageEntry"]
