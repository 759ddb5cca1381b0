"""Naukri job pages.

Job detail pages are /job-listings-{slug}-{id}. The header uses CSS-module
class names (styles_jd-header-comp-name__MvqAI and friends) that get new
hash suffixes on redeploys, so the layout strategy falls back to
[class*=...] matches. The company element also holds the rating widget,
which reads as e.g. "Acme Corp 4.3 1234 Reviews" and has to be cut off.

Flows:
  - "Apply on company site" leaves Naukri.
  - "Apply" submits the profile on Naukri in one step, with no separate
    submit page.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from applytrack.models import ApplyFlow
from applytrack.platforms.base import (
    ClassifierRule,
    ControlInfo,
    ExtractedFields,
    Platform,
    attribute_pattern_strategy,
    minimal_strategy,
    select_text,
)

TITLE_SELECTORS = ["h1", '[class*="title"]']
COMPANY_SELECTORS = [
    '[class="styles_jd-header-comp-name__MvqAI"]',
    '[class*="comp-name"]',
    '[class*="company"]',
]
LOCATION_SELECTORS = [
    '[class="styles_jhc__location__W_pVs"]',
    ".loc-wrap",
    ".location",
    '[class*="location"]',
]
# [class*="jd-"] also matches the header block, so it only comes after the
# description-specific selectors
DESCRIPTION_SELECTORS = [
    '[class*="dang-inner-html"]',
    ".job-description",
    '[class*="job-desc"]',
    '[class*="jd-"]',
    '[class*="description"]',
]

_REVIEWS_RE = re.compile(r"\d+\.?\d*\s*Reviews?", re.IGNORECASE)
_RATING_RE = re.compile(r"\s+\d(?:\.\d+)?\s*$")


def strip_reviews(company: str) -> str:
    """Drop the "4.3 1234 Reviews" rating suffix from a company name."""
    stripped = _REVIEWS_RE.sub("", company).strip()
    if stripped == company:
        return company
    # the star rating sits in its own span right before the review count
    return _RATING_RE.sub("", stripped).strip()


def extract_job_header(soup: BeautifulSoup) -> ExtractedFields | None:
    """Current job-header layout."""
    title = select_text(soup, TITLE_SELECTORS)
    company = select_text(soup, COMPANY_SELECTORS)
    if not title or not company:
        return None
    return ExtractedFields(
        job_title=title,
        company_name=company,
        location=select_text(soup, LOCATION_SELECTORS),
        description=select_text(soup, DESCRIPTION_SELECTORS),
    )


def _is_company_site(c: ControlInfo) -> bool:
    return (
        "company site" in c.text
        or "company-site-button" in c.classes
        or c.element_id == "company-site-button"
    )


def _is_direct_apply(c: ControlInfo) -> bool:
    return (
        "apply" in c.text
        or "apply-button" in c.classes
        or "apply" in c.element_id
    )


NAUKRI = Platform(
    name="naukri",
    label="Naukri",
    hosts=("naukri.com",),
    strategies=(
        extract_job_header,
        attribute_pattern_strategy,
        minimal_strategy('[class*="comp"]'),
    ),
    rules=(
        ClassifierRule(ApplyFlow.EXTERNAL_APPLY, _is_company_site),
        ClassifierRule(ApplyFlow.DIRECT_APPLY, _is_direct_apply),
    ),
    control_tags=("button", "a"),
    success_phrases=(
        "applied successfully",
        "you have successfully applied",
    ),
    clean_company=strip_reviews,
)
