import os
from dotenv import load_dotenv

load_dotenv()

user = os.getenv("DB_USER")
password = os.getenv("DB_PASSWORD")
host = os.getenv("DB_HOST")
port = os.getenv("DB_PORT")
db_name = os.getenv("DB_NAME")
db_backend = os.getenv("DB_BACKEND", "postgres")
sqlite_path = os.getenv("SQLITE_PATH", "casino.sqlite3")

redis_host = os.getenv("REDIS_HOST", "redis")
redis_port = int(os.getenv("REDIS_PORT", "6379"))

# Qubic network / casino wallet
qubic_rpc_url = os.getenv("QUBIC_RPC_URL", "https://rpc.qubic.org")
casino_wallet_url = os.getenv("CASINO_WALLET_URL", "http://wallet:8080")
casino_public_id = os.getenv("CASINO_PUBLIC_ID")
tick_offset = int(os.getenv("TICK_OFFSET", "20"))
transfer_timeout = float(os.getenv("TRANSFER_TIMEOUT", "20"))

# Game tuning
house_edge = os.getenv("HOUSE_EDGE", "0.025")
session_ttl_seconds = int(os.getenv("SESSION_TTL_SECONDS", "300"))
crash_starting_ms = int(os.getenv("CRASH_STARTING_MS", "5000"))
crash_tick_ms = int(os.getenv("CRASH_TICK_MS", "50"))
crash_growth_rate = float(os.getenv("CRASH_GROWTH_RATE", "0.00012"))
crash_max_multiplier = int(os.getenv("CRASH_MAX_MULTIPLIER", "100000"))
slide_betting_ms = int(os.getenv("SLIDE_BETTING_MS", "15000"))
slide_playing_ms = int(os.getenv("SLIDE_PLAYING_MS", "5000"))

if __name__ == "__main__":
    print(user, host, port, db_name, db_backend, qubic_rpc_url, casino_public_id)
