import os
from pathlib import Path

from .constants import AUTH_FILE_NAME, DATA_DIR, DB_FILE_NAME, LOG_DIR_NAME

# PLUMBING_POS_DATA_DIR overrides the per-user private data directory
DATA_PATH = Path(os.environ.get("PLUMBING_POS_DATA_DIR") or Path.home() / DATA_DIR)
DB_PATH = DATA_PATH / DB_FILE_NAME
AUTH_FILE = DATA_PATH / AUTH_FILE_NAME
LOG_DIR = DATA_PATH / LOG_DIR_NAME
