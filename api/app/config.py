import os

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

# Pools larger than this are split into id-ordered cohorts and matched independently.
MATCH_POOL_CAP = int(os.getenv("MATCH_POOL_CAP", "2000"))

CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173").split(",")
    if origin.strip()
]

DB_CONNECT_ATTEMPTS = int(os.getenv("DB_CONNECT_ATTEMPTS", "20"))
DB_CONNECT_DELAY_SECONDS = float(os.getenv("DB_CONNECT_DELAY_SECONDS", "1.5"))
