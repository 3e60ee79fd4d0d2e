"""Configuration settings for the source fetcher."""

import logging
import os
from dotenv import load_dotenv

load_dotenv()

# Logging setup
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)

# Provider credentials. All optional: every provider works anonymously,
# keys only raise rate limits (or join the polite pool for CrossRef/OpenAlex).
CROSSREF_MAILTO = os.getenv("CROSSREF_MAILTO")
OPENALEX_MAILTO = os.getenv("OPENALEX_MAILTO")
PUBMED_API_KEY = os.getenv("PUBMED_API_KEY")
SEMANTIC_SCHOLAR_API_KEY = os.getenv("SEMANTIC_SCHOLAR_API_KEY")
CORE_API_KEY = os.getenv("CORE_API_KEY")

# Cache settings
SEARCH_RESULTS_TTL_SECONDS = float(os.getenv("SEARCH_RESULTS_TTL_SECONDS", str(30 * 60)))
METADATA_TTL_SECONDS = float(os.getenv("METADATA_TTL_SECONDS", str(24 * 60 * 60)))
CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "1000"))

# In-flight requests older than this are swept even if they never reported back
IN_FLIGHT_MAX_AGE_SECONDS = float(os.getenv("IN_FLIGHT_MAX_AGE_SECONDS", "60"))

# Orchestrator settings
MAX_PARALLEL_REQUESTS = int(os.getenv("MAX_PARALLEL_REQUESTS", "5"))
ADAPTER_TIMEOUT_SECONDS = float(os.getenv("ADAPTER_TIMEOUT_SECONDS", "15"))
STREAM_LIMIT_PER_PROVIDER = int(os.getenv("STREAM_LIMIT_PER_PROVIDER", "25"))

# Retry settings
MAX_RETRY_DELAY_SECONDS = 10.0
