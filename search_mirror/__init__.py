from .config import RunConfig, SearchServiceConfig, ExportConfig, RequestConfig
from .backup import BackupManager

__version__ = "0.3.1"
__author__ = "search-mirror"

__all__ = [
    "BackupManager",
    "RunConfig",
    "SearchServiceConfig",
    "ExportConfig",
    "RequestConfig",
]
