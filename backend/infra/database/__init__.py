# Database module
from .connection import engine, get_session, init_db, close_db, db_lock, DB_PATH, DATABASE_URL
from .errors import storage_errors, translate_db_error
