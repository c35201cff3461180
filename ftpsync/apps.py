from django.apps import AppConfig


class FtpSyncConfig(AppConfig):
    name = "ftpsync"
    verbose_name = "FTP to Google Drive sync"
    default_auto_field = "django.db.models.BigAutoField"
