"""CLI command modules for vocab-anki-sync.

- shared.py: Common utilities (config/logger loading, console, pipeline)
- queue_commands.py: enqueue, process, retry, recover, status, items
- review_commands.py: accept, reject, edit, delete, sync-enable
- sync_commands.py: reconcile, report, check
"""

from .shared import console, get_config_and_logger, open_pipeline

__all__ = ["console", "get_config_and_logger", "open_pipeline"]
