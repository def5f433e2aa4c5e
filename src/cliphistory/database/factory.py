from cliphistory.config import StorageConfig, StorageType
from cliphistory.database.base import HistoryStore
from cliphistory.errors import ConfigurationError


def create_store(config: StorageConfig) -> HistoryStore:
    """Build the history store selected by ``config.type``."""
    if config.type == StorageType.JSON:
        from cliphistory.database.json_store import JsonHistoryStore
        return JsonHistoryStore(config)
    elif config.type == StorageType.MYSQL:
        from cliphistory.database.mysql_store import MySQLHistoryStore
        return MySQLHistoryStore(config)
    else:
        raise ConfigurationError(f"Unsupported storage type: {config.type}")
