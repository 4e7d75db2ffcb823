"""Project-wide configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(os.environ.get("GHIBLI_PROJECT_ROOT", Path.cwd()))

load_dotenv(PROJECT_ROOT / ".env")

DATA_DIR = PROJECT_ROOT / "data"

# Object storage – original stills, WebP thumbnails, local placeholders
IMAGES_DIR = Path(os.environ.get("GHIBLI_IMAGES_DIR", DATA_DIR / "images"))
THUMBNAILS_DIR = Path(os.environ.get("GHIBLI_THUMBNAILS_DIR", DATA_DIR / "thumbnails"))
PLACEHOLDERS_DIR = Path(os.environ.get("GHIBLI_PLACEHOLDERS_DIR", DATA_DIR / "placeholders"))
THUMBNAIL_WIDTH = 480
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")

# Cloudflare Workers AI
CLOUDFLARE_ACCOUNT_ID = os.environ.get("CLOUDFLARE_ACCOUNT_ID", "")
CLOUDFLARE_API_TOKEN = os.environ.get("CLOUDFLARE_API_TOKEN", "")
CLOUDFLARE_API_BASE = os.environ.get(
    "CLOUDFLARE_API_BASE", "https://api.cloudflare.com/client/v4"
)
BACKEND_TIMEOUT = float(os.environ.get("GHIBLI_BACKEND_TIMEOUT", "30"))

# Search – AutoRAG index over the stills
AUTORAG_NAME = os.environ.get("GHIBLI_AUTORAG_NAME", "studio-ghibli-google")
SEARCH_MAX_RESULTS = 30
SEARCH_SCORE_THRESHOLD = 0.25

# Query rewriting – text generation
REWRITE_MODEL_NAME = os.environ.get("GHIBLI_REWRITE_MODEL", "@cf/meta/llama-3.1-8b-instruct")
REWRITE_MAX_TOKENS = 50

# Image analysis – upload limits and retry budget
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ANALYZE_MAX_RETRIES = 2
ANALYZE_RETRY_BASE_DELAY = 1.0

# Showcase – random stills on the landing view
RANDOM_IMAGE_COUNT = 7
RANDOM_LIST_LIMIT = 1000

# Web server and UI
HOST = os.environ.get("GHIBLI_HOST", "127.0.0.1")
PORT = int(os.environ.get("GHIBLI_PORT", "7860"))
API_BASE_URL = os.environ.get("GHIBLI_API_BASE_URL", f"http://{HOST}:{PORT}")
PUBLIC_URL = os.environ.get("GHIBLI_PUBLIC_URL", API_BASE_URL)
LOG_LEVEL = os.environ.get("GHIBLI_LOG_LEVEL", "INFO")
