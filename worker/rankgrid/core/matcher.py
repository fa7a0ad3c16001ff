"""Decide whether a search result record is the tracked business.

Provider records are inconsistent, so identity is checked through an ordered
cascade of signals. A rule only fires on a positive match; a missing signal
falls through to the next rule instead of deciding anything.

1. place_id exact match
2. CID exact match
3. phone (E.164, digits when unparseable)
4. website hostname
5. fuzzy name (suffix stripped, equality or substring)
"""

import logging
import re
import unicodedata
from typing import Callable, Optional, Tuple
from urllib.parse import urlsplit

import phonenumbers

from rankgrid.core.config import get_settings
from rankgrid.models import ResultRecord, TargetBusiness

logger = logging.getLogger(__name__)

CORPORATE_SUFFIXES = ("llc", "inc", "co", "company", "corp", "corporation", "pllc", "plc", "ltd")

_NON_DIGIT = re.compile(r"\D+")
_NON_WORD = re.compile(r"[^\w\s]|_", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")
_SUFFIX = re.compile(r"\b(?:%s)\b" % "|".join(CORPORATE_SUFFIXES))
_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


def normalize_phone(value: Optional[str]) -> str:
    return _NON_DIGIT.sub("", str(value or ""))


def to_e164(value: Optional[str], region: Optional[str] = None) -> Optional[str]:
    """Parse a phone number to E.164, or None when it is not a possible number."""
    text = str(value or "").strip()
    if not text:
        return None
    try:
        parsed = phonenumbers.parse(text, region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_possible_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def phones_match(left: Optional[str], right: Optional[str], region: Optional[str] = None) -> bool:
    """Compare phone numbers as E.164, falling back to plain digits when either side will not parse."""
    if region is None:
        region = get_settings().default_phone_region
    a = to_e164(left, region)
    b = to_e164(right, region)
    if a and b:
        return a == b
    digits = normalize_phone(left)
    return bool(digits) and digits == normalize_phone(right)


def hostname_of(value: Optional[str]) -> Optional[str]:
    """Reduce a website, domain or URL to a bare lowercase hostname."""
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = urlsplit(text if _SCHEME.match(text) else f"https://{text}")
        host = parsed.hostname
    except ValueError:
        host = None
    if not host:
        host = _SCHEME.sub("", text).split("/")[0]
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


def normalize_name(value: Optional[str]) -> str:
    text = unicodedata.normalize("NFKD", str(value or "").lower())
    # Drop the decomposed accents so "café" == "cafe".
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.replace("&", " and ")
    text = _NON_WORD.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def strip_name(value: Optional[str]) -> str:
    """Normalize a business name and drop corporate suffixes. Idempotent."""
    text = _SUFFIX.sub(" ", normalize_name(value))
    return _WHITESPACE.sub(" ", text).strip()


def _place_id_rule(candidate: ResultRecord, target: TargetBusiness) -> bool:
    return bool(target.place_id and candidate.place_id and target.place_id == candidate.place_id)


def _cid_rule(candidate: ResultRecord, target: TargetBusiness) -> bool:
    if not target.cid or not candidate.cid:
        return False
    return str(target.cid).strip() == str(candidate.cid).strip()


def _phone_rule(candidate: ResultRecord, target: TargetBusiness) -> bool:
    return phones_match(target.phone, candidate.phone)


def _website_rule(candidate: ResultRecord, target: TargetBusiness) -> bool:
    target_host = hostname_of(target.website)
    candidate_host = hostname_of(candidate.website)
    return bool(target_host and candidate_host and target_host == candidate_host)


def _name_rule(candidate: ResultRecord, target: TargetBusiness) -> bool:
    a = strip_name(target.name)
    b = strip_name(candidate.title)
    if not a or not b:
        return False
    return a == b or a in b or b in a


Rule = Tuple[str, Callable[[ResultRecord, TargetBusiness], bool]]

RULES: Tuple[Rule, ...] = (
    ("place_id", _place_id_rule),
    ("cid", _cid_rule),
    ("phone", _phone_rule),
    ("website", _website_rule),
    ("name", _name_rule),
)


def matching_rule(candidate: Optional[ResultRecord], target: Optional[TargetBusiness]) -> Optional[str]:
    """Return the name of the first rule that identifies ``candidate`` as ``target``."""
    if candidate is None or target is None:
        return None
    for name, rule in RULES:
        if rule(candidate, target):
            logger.debug("Matched %r via %s rule", candidate.title, name)
            return name
    return None


def matches(candidate: Optional[ResultRecord], target: Optional[TargetBusiness]) -> bool:
    return matching_rule(candidate, target) is not None
