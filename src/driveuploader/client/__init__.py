"""Client module - Drive API, sync and CLI."""
