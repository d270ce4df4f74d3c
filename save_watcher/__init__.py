"""Save Watcher — sequence-numbered backups of changed files.

Watches a source folder tree for modified files and copies each one,
once per burst of changes, into a backup folder as ``NNNN_<name>``.
"""

__version__ = "1.0.0"
__app_name__ = "Save Watcher"
