# Run audit models live with the sync engine; imported here so Django
# registers them under the ftpsync app.
from ftpsync.sync.models import EventType, RunStatus, SyncEvent, SyncRun  # noqa: F401
