import re
import secrets
import string
import time

DEFAULT_ID_FORMAT = "{title}-{close-mm-dd-yyyy}"
FALLBACK_SLUG = "contest"
MIN_ID_LENGTH = 3
MAX_ID_LENGTH = 32
MAX_SUFFIX_ATTEMPTS = 10000

ID_FORMAT_TOKENS = (
    "{title}",
    "{close-mm-dd-yyyy}",
    "{close-yyyy-mm-dd}",
    "{start-mm-dd-yyyy}",
    "{start-yyyy-mm-dd}",
)

_VALID_ID = re.compile(r"^[a-z0-9-]+$")
_TOKEN = re.compile(r"\{[^{}]*\}")
_ID_ALPHABET = string.ascii_lowercase + string.digits


def canonicalize_contest_id(contest_id):
    return contest_id.lower()


def is_valid_contest_id(contest_id):
    return (
        bool(_VALID_ID.match(contest_id))
        and MIN_ID_LENGTH <= len(contest_id) <= MAX_ID_LENGTH
    )


def generate_contest_id(length=8):
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def normalize_contest_id(candidate):
    value = canonicalize_contest_id(candidate)
    value = re.sub(r"[\s_]+", "-", value)
    value = re.sub(r"[^a-z0-9-]", "", value)
    value = re.sub(r"-+", "-", value)
    return value.strip("-")


def slugify_title(title):
    return normalize_contest_id(title or "") or FALLBACK_SLUG


def validate_id_format(fmt):
    """Return a list of tokens in ``fmt`` that the builder does not know."""
    return [token for token in _TOKEN.findall(fmt or "") if token not in ID_FORMAT_TOKENS]


def _format_date(value, order):
    if order == "mm-dd-yyyy":
        return value.strftime("%m-%d-%Y")
    return value.strftime("%Y-%m-%d")


def build_contest_id(title, close_at, start_at=None, fmt=None):
    title_slug = slugify_title(title)
    template = fmt.strip() if fmt and fmt.strip() else DEFAULT_ID_FORMAT

    tokens = {
        "{title}": title_slug,
        "{close-mm-dd-yyyy}": _format_date(close_at, "mm-dd-yyyy"),
        "{close-yyyy-mm-dd}": _format_date(close_at, "yyyy-mm-dd"),
        "{start-mm-dd-yyyy}": _format_date(start_at, "mm-dd-yyyy") if start_at else "",
        "{start-yyyy-mm-dd}": _format_date(start_at, "yyyy-mm-dd") if start_at else "",
    }

    rendered = template
    for token, value in tokens.items():
        rendered = rendered.replace(token, value)

    normalized = normalize_contest_id(rendered)
    return normalized or f"{title_slug}-{_format_date(close_at, 'mm-dd-yyyy')}"


def _base36(number):
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_ID_ALPHABET[remainder])
    return "".join(reversed(digits)) or "0"


def _timestamp_token():
    return _base36(int(time.time() * 1000))


def unique_contest_id(candidate, exists):
    """Make ``candidate`` unique by suffixing ``-2``, ``-3``, ... as needed.

    ``exists`` is a callable answering whether an id is already taken. The
    search gives up after ``MAX_SUFFIX_ATTEMPTS`` and falls back to a
    timestamp suffix so it always terminates.
    """
    base = candidate[:MAX_ID_LENGTH]
    if not is_valid_contest_id(base):
        base = normalize_contest_id(base)[:MAX_ID_LENGTH].strip("-")

    if len(base) < MIN_ID_LENGTH:
        base = f"vote-{_timestamp_token()}"[:MAX_ID_LENGTH]

    if not exists(base):
        return base

    for suffix in range(2, MAX_SUFFIX_ATTEMPTS):
        suffix_text = f"-{suffix}"
        prefix = base[: MAX_ID_LENGTH - len(suffix_text)].rstrip("-")
        next_id = f"{prefix}{suffix_text}"
        if is_valid_contest_id(next_id) and not exists(next_id):
            return next_id

    return f"{base[:24]}-{_timestamp_token()}"[:MAX_ID_LENGTH]
