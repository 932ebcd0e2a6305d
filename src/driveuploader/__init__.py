"""driveuploader - Upload new files from a local folder to Google Drive."""

__version__ = "0.1.0"
