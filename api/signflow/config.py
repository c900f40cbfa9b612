import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./signflow.db")
SECRET_KEY = os.getenv("SECRET_KEY", "devsecret")
ADMIN_ACCESS_TOKEN = os.getenv("ADMIN_ACCESS_TOKEN")
BASE_URL = os.getenv("BASE_URL", "http://localhost:3000").rstrip("/")
DEFAULT_EXPIRATION_DAYS = int(os.getenv("DEFAULT_EXPIRATION_DAYS", "30"))
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
WORKER_QUEUE = os.getenv("WORKER_QUEUE", "signing")
SWEEP_INTERVAL_SECONDS = float(os.getenv("SWEEP_INTERVAL_SECONDS", "300"))
COMPLETION_QUEUE_ENABLED = os.getenv("COMPLETION_QUEUE_ENABLED", "false").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
