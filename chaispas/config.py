import os

from dotenv import load_dotenv

load_dotenv()

# Use a local SQLite file unless a database URL is configured
_current_dir = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.environ.get(
    "CHAISPAS_DATA_DIR", os.path.join(os.path.dirname(_current_dir), "assets", "data")
)
DATABASE_URL = os.environ.get("DATABASE_URL") or (
    f"sqlite:///{os.path.join(DATA_DIR, 'decisions.db')}"
)

ALLOWED_ORIGINS = os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")

SENTRY_DSN = os.environ.get("SENTRY_DSN")
SENTRY_TRACES_SAMPLE_RATE = float(os.environ.get("SENTRY_TRACES_SAMPLE_RATE", "1.0"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def ensure_data_dir():
    """Create the directory of a file-backed SQLite database if it is missing."""
    if DATABASE_URL.startswith("sqlite:///"):
        directory = os.path.dirname(DATABASE_URL[len("sqlite:///") :])
        if directory:
            os.makedirs(directory, exist_ok=True)
