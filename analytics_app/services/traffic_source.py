"""
Referer classification shared by ingestion (aggregate keys) and reports.
"""

from typing import NamedTuple, Optional


class SourceInfo(NamedTuple):
    source: str
    medium: str
    campaign: str


DIRECT = SourceInfo(source="Direct", medium="none", campaign="direct")
REFERRAL = SourceInfo(source="Referral", medium="referral", campaign="referral")

# Checked in order, substring match against the raw referer
KNOWN_SOURCES = (
    ("google.com", SourceInfo("Google", "organic", "google-search")),
    ("facebook.com", SourceInfo("Facebook", "social", "facebook")),
    ("linkedin.com", SourceInfo("LinkedIn", "social", "linkedin")),
    ("twitter.com", SourceInfo("Twitter", "social", "twitter")),
    ("instagram.com", SourceInfo("Instagram", "social", "instagram")),
)


def classify_referer(referer: Optional[str]) -> SourceInfo:
    if not referer:
        return DIRECT
    for domain, info in KNOWN_SOURCES:
        if domain in referer:
            return info
    return REFERRAL
