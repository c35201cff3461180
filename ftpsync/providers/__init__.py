"""Clients for the FTP source and the Google Drive sink."""
