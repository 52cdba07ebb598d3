# scripts/init_db.py
# Create the api_keys, users and admins tables in the configured database.
from apikeys.config import get_config
from apikeys.database import DatabaseManager

config = get_config()
db = DatabaseManager(config)
db.initialize()

if not db.health_check():
    raise SystemExit("Database is not reachable")

print(f"Tables ready: {', '.join(DatabaseManager.TABLE_CREATION_ORDER)}")
db.dispose()
