import os

# --- CONFIGURATION ---
REQUEST_TIMEOUT_SECONDS = float(os.environ.get("REQUEST_TIMEOUT_SECONDS", "5"))
DNS_TIMEOUT_SECONDS = float(os.environ.get("DNS_TIMEOUT_SECONDS", "5"))

# 5 redirects means at most 6 requests per scan
MAX_REDIRECTS = int(os.environ.get("MAX_REDIRECTS", "5"))
MAX_URL_LENGTH = int(os.environ.get("MAX_URL_LENGTH", "2048"))

USER_AGENT = os.environ.get("USER_AGENT", "NetKnife/1.0 SecurityHeadersScanner")

ALLOWED_SCHEMES = ("http", "https")
ALLOWED_PORTS = (80, 443)
DEFAULT_PORTS = {"http": 80, "https": 443}

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Scheduled sweep
REPORT_BUCKET_NAME = os.environ.get("REPORT_BUCKET_NAME")
SWEEP_TARGETS = os.environ.get("SWEEP_TARGETS", "[]")
# --- END CONFIGURATION ---
