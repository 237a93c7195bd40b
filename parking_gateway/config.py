# parking_gateway/config.py
import os

from dotenv import load_dotenv
import httpx

# ================== CONFIG ==================
load_dotenv()

PARKING_API_URL = os.getenv(
    "PARKING_API_URL",
    "http://www.szdaqin.cn/shopDiscount/goDicount.do?responseFunction=goDicount&querytype=0",
)
PARKING_ORIGIN = os.getenv("PARKING_ORIGIN", "http://www.szdaqin.cn").rstrip("/")

CONNECT_TIMEOUT = float(os.getenv("CONNECT_TIMEOUT", "10"))
READ_TIMEOUT    = float(os.getenv("READ_TIMEOUT", "30"))
WRITE_TIMEOUT   = float(os.getenv("WRITE_TIMEOUT", "30"))
POOL_TIMEOUT    = float(os.getenv("POOL_TIMEOUT", "10"))

ALLOWED_ORIGINS = [o for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

DEFAULT_TIMEOUT = httpx.Timeout(
    connect=CONNECT_TIMEOUT, read=READ_TIMEOUT, write=WRITE_TIMEOUT, pool=POOL_TIMEOUT
)

# Optional API key (empty -> no check)
EXPECTED_API_KEY = os.getenv("API_KEY", "").strip()

MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 18_7 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/26.2 Mobile/15E148 Safari/604.1"
)

# ================== LEGACY REQUEST SHAPE ==================
DEFAULT_BODY_PARAMS = {
    "id": "8",
    "businessid": "3",
    "parkid": "229",
    "type": "null",
    "serialNumber": "",
    "orderno": "",
    "totalcount": "1",
}

LEGACY_HEADERS = {
    "X-Requested-With": "XMLHttpRequest",
    "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
    "Origin": PARKING_ORIGIN,
    "Accept": "text/plain, */*; q=0.01",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "User-Agent": MOBILE_USER_AGENT,
}

# Keys rebuilt from the scan redirect query when a scan URL is updated
REDIRECT_PARAM_KEYS = ("id", "businessid", "parkid", "totalcount")
