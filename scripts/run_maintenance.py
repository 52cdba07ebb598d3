# scripts/run_maintenance.py
# Run the expiry/inactivity sweep once, outside any request (cron or a scheduler).
from apikeys.config import get_config
from apikeys.database import DatabaseManager
from apikeys.service import KeyLifecycleService

config = get_config()
db = DatabaseManager(config)
db.initialize()

report = KeyLifecycleService(db, config).apply_maintenance()
print(f"Deactivated {report.expired} expired and {report.idle} idle key(s)")
db.dispose()
