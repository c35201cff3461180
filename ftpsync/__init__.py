"""
Verified one-way synchronization of FTP sources into Google Drive.
"""
