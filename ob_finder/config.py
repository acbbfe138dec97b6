# ob_finder/config.py
import os

from dotenv import load_dotenv

# Secrets and deployment overrides come from the environment (.env is optional)
load_dotenv()


def _env_list(name, default):
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(',') if item.strip()]


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


# Symbols to scan (ccxt unified format). Override with SYMBOLS=BTC/USDT,ETH/USDT
SYMBOLS = _env_list('SYMBOLS', ["BTC/USDT"])

# Timeframes to scan for every symbol
TIMEFRAMES = _env_list('TIMEFRAMES', ["1h", "4h", "1d"])

# Number of candles requested per symbol/timeframe
KLINE_LIMIT = int(os.getenv('KLINE_LIMIT', '1000'))

# Number of days of historical data for run_history charts
HISTORY_DAYS = 30

# Live polling interval in seconds (used by run_live worker)
POLL_INTERVAL_SEC = int(os.getenv('POLL_INTERVAL_SEC', '300'))

# Maximum number of symbol/timeframe pairs scanned in parallel
MAX_WORKERS = int(os.getenv('MAX_WORKERS', '4'))

# ========================================
# Order Block Detection Parameters
# ========================================

# Candles on each side of a swing point
SWING_LENGTH = 10

# Breakout volume must exceed VOLUME_SMA_PERIOD average by this multiplier
VOLUME_MULTIPLIER = 1.2
VOLUME_SMA_PERIOD = 20

# Accepted volume balance between the breakout halves (percent, inclusive)
MIN_BALANCE_PERCENT = 20
MAX_BALANCE_PERCENT = 80

# Zone height may not exceed ATR(ATR_PERIOD) * MAX_ATR_MULTIPLIER
ATR_PERIOD = 10
MAX_ATR_MULTIPLIER = 3.5

# How a zone is breached: "Wick" uses the candle extreme, "Close" the body extreme
END_METHOD = os.getenv('END_METHOD', 'Wick')

# ========================================
# Seen-zone store
# ========================================

STATE_FILE = os.getenv('STATE_FILE', 'data/previous_zones.json')
STATE_MAX_ENTRIES = 10000

# ========================================
# Notifications
# ========================================

ENABLE_TELEGRAM = _env_bool('ENABLE_TELEGRAM', True)
TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN', '')
TELEGRAM_CHAT_ID = os.getenv('TELEGRAM_CHAT_ID', '')
TELEGRAM_TIMEOUT_SEC = 10

ENABLE_EMAIL = _env_bool('ENABLE_EMAIL', False)
EMAIL_RECIPIENT = os.getenv('EMAIL_RECIPIENT', '')
SMTP_HOST = os.getenv('SMTP_HOST', 'smtp.gmail.com')
SMTP_PORT = int(os.getenv('SMTP_PORT', '587'))
SMTP_USER = os.getenv('SMTP_USER', '')
SMTP_PASSWORD = os.getenv('SMTP_PASSWORD', '')
SMTP_TIMEOUT_SEC = 15

# ========================================
# Binance streaming
# ========================================

WS_BASE = "wss://stream.binance.com:9443"
WS_MAX_BARS = 500

# ========================================
# Logging
# ========================================

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_DIR = os.getenv('LOG_DIR', 'logs')
