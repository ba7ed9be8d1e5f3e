import re

APP_NAME = "optcg"

SITE_URLS = {
    "ja": "https://www.onepiece-cardgame.com",
    "tw": "https://asia-tw.onepiece-cardgame.com",
}

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

CONSENT_SELECTOR = "#onetrust-close-btn-container button"
SERIES_OPTION_SELECTOR = ".formsetDefaultArea .seriesCol select option"
CARD_BLOCK_SELECTOR = ".resultCol .modalCol"

SETTLE_SECONDS = 5.0
CONSENT_TIMEOUT_MS = 10_000
CONSENT_PAUSE_MS = 1_000

# OP05-002_p1.png, ST01-001_p12.jpg
ALT_ART_RE = re.compile(r"^.+_p\d+\.[A-Za-z0-9]+$")
