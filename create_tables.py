"""
Create the Access Ledger table for LEDGER_BACKEND=sql.
Idempotent - safe to run on every deploy before starting uvicorn.
"""
from dotenv import load_dotenv
load_dotenv()

from lina.core.config import Settings
from lina.db.session import create_db_engine
from lina.services.ledger import SqlLedger

settings = Settings.from_env()

print("Creating ledger tables...")
SqlLedger(create_db_engine(settings.database_url)).create_tables()
print("✅ Ledger tables created successfully!")
