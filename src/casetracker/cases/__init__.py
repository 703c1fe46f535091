from .backup import backup_filename, dump_export, export_data, import_data
from .store import CaseStore, CurrentUserProvider

__all__ = [
    "CaseStore",
    "CurrentUserProvider",
    "backup_filename",
    "dump_export",
    "export_data",
    "import_data",
]
