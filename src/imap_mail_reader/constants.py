"""Constants for IMAP Mail Reader."""

import re

# --- Connection ---
IMAP_PORT = 993  # implicit TLS only
MAILBOX = "INBOX"
STEP_TIMEOUT = 30.0  # seconds to wait for one tagged completion
CONNECT_ATTEMPTS = 3
CONNECT_BACKOFF_MAX = 8  # seconds between connect attempts
MAX_LINE_LENGTH = 1_000_000  # bytes, same cap as imaplib
TAG_PREFIX = "A"

# --- Batch pacing ---
BATCH_THROTTLE = 1.0  # seconds between batch items
LISTING_THROTTLE = 0.5  # seconds between header fetches in a listing
LATEST_DEFAULT = 5

# --- FETCH items ---
LIST_HEADER_FIELDS = ("FROM", "SUBJECT", "DATE")
READ_HEADER_FIELDS = ("FROM", "TO", "SUBJECT", "DATE")
BATCH_HEADER_FIELDS = ("SUBJECT", "DATE")

# --- Sentinels ---
NOT_PRESENT = "N/A"
NO_SUBJECT = "No Subject"
NO_DATE = "No Date"
NO_EMAILS_FOUND = "No emails found"
NO_EMAILS_WITH_SUBJECT = "No emails found with subject filter"
NO_URL_MATCH = "No URL match"
NO_URL_MATCH_WITH_SUBJECT = "Subject filter applied but no URL match"
NO_MATCHING_URL = "No matching URL found"
SKIP = "SKIP"

# --- CSV formats ---
SENDERS_HEADER = ["email"]
RESULTS_HEADER = ["sender_email", "email_id", "subject", "date", "status"]
URLS_HEADER = ["email", "subject", "matchURL"]
STATUS_FOUND = "found"
STATUS_NOT_FOUND = "not_found"
RESULT_STATUSES = (STATUS_FOUND, STATUS_NOT_FOUND)
DEFAULT_RESULTS_FILE = "email_results.csv"
DEFAULT_URLS_FILE = "url_extracts.csv"
PROCESS_ACTIONS = ("list", "read-all", "read-filtered")

# --- Validation ---
EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_ABBREVIATIONS = [
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
]
SEARCH_STATUS_KEYWORDS = [
    "SEEN",
    "UNSEEN",
    "FLAGGED",
    "UNFLAGGED",
    "ANSWERED",
    "UNANSWERED",
    "DELETED",
    "UNDELETED",
    "DRAFT",
    "UNDRAFT",
]

# --- Exit codes ---
EXIT_USAGE = 1
EXIT_TRANSPORT = 2
EXIT_FAILURE = 3

# --- Display ---
PREVIEW_ROWS = 10
