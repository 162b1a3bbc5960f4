"""
davsync - Backup and restore of CalDAV/CardDAV account configuration.

Serializes accounts, their calendars, address books and task lists, and the
app-wide settings into a portable JSON document, and restores local state
from such a document without ever carrying passwords.
"""

__version__ = "0.4.0"
