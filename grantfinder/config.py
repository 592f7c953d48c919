"""
Runtime configuration.

Values come from the environment (a local .env file is loaded if present).
The funding and deadline limits are fixed domain constants shared with the
search UI's range sliders.
"""

import os

from dotenv import load_dotenv

# Load environment
load_dotenv()

# Storage
GRANTS_DB_PATH = os.getenv("GRANTS_DB_PATH", "grants.db")
DATABASE_URL = os.getenv("DATABASE_URL")

# Pagination and ranking
GRANTS_PER_PAGE = int(os.getenv("GRANTS_PER_PAGE", "10"))
RELEVANCE_CANDIDATE_LIMIT = int(os.getenv("RELEVANCE_CANDIDATE_LIMIT", "200"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Maximum funding amount for grant filters ($5,000,000+ means unbounded)
MAX_FUNDING = 5_000_000

# Deadline days range for grant filters (365 means no upper bound)
MIN_DEADLINE_DAYS = 0
MAX_DEADLINE_DAYS = 365
