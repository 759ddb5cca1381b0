"""LinkedIn job pages.

Job detail pages live under linkedin.com/jobs/view/{id} (or the
search-results pane with ?currentJobId=). Layout as of the last check:
  - Title in <h1 class="t-24 t-bold ...">
  - Company in .job-details-jobs-unified-top-card__company-name > a
  - Location is the first "·"-separated chunk of the low-emphasis line
    under the title
  - Description in .jobs-description-content__text

Flows:
  - "Easy Apply" opens an in-page multi-step modal; the last step's
    "Submit application" button is followed by an "Application sent" dialog.
  - Plain "Apply" opens the company's site in a new tab.
"""

from __future__ import annotations

from bs4 import BeautifulSoup

from applytrack.models import ApplyFlow
from applytrack.platforms.base import (
    ClassifierRule,
    ControlInfo,
    ExtractedFields,
    Platform,
    attribute_pattern_strategy,
    minimal_strategy,
    select_first,
    select_text,
)

TITLE_SELECTORS = [
    "h1.t-24.t-bold",
    "h1.job-title",
    ".job-details-jobs-unified-top-card__job-title",
]
COMPANY_SELECTORS = [
    ".job-details-jobs-unified-top-card__company-name a",
    ".job-details-jobs-unified-top-card__company-name",
    ".jobs-unified-top-card__company-name",
]
LOCATION_SELECTORS = [
    'span[dir="ltr"] span.tvm__text--low-emphasis',
    ".job-details-jobs-unified-top-card__bullet",
    ".jobs-unified-top-card__bullet",
]
DESCRIPTION_SELECTORS = [
    ".jobs-description-content__text",
    ".jobs-description__content",
    ".jobs-box__html-content",
]


def extract_top_card(soup: BeautifulSoup) -> ExtractedFields | None:
    """Current unified top-card layout."""
    title = select_text(soup, TITLE_SELECTORS)
    company = select_text(soup, COMPANY_SELECTORS)
    if not title or not company:
        return None

    location = ""
    location_el = select_first(soup, LOCATION_SELECTORS)
    if location_el is not None:
        location = location_el.get_text(" ", strip=True).split("·")[0]

    return ExtractedFields(
        job_title=title,
        company_name=company,
        location=location,
        description=select_text(soup, DESCRIPTION_SELECTORS),
    )


def _is_submit(c: ControlInfo) -> bool:
    return (
        "submit application" in c.text
        or "submit application" in c.aria
        or c.text == "submit"
    )


def _is_easy_apply(c: ControlInfo) -> bool:
    return "easy apply" in c.text or "easy apply" in c.aria


def _is_external_apply(c: ControlInfo) -> bool:
    if "easy apply" in c.text or "easy apply" in c.aria or "submit" in c.text:
        return False
    return (
        c.text in ("apply", "apply now")
        or c.text.startswith("apply")
        or "apply to" in c.aria
        or ("jobs-apply-button" in c.classes and "easy" not in c.text)
    )


LINKEDIN = Platform(
    name="linkedin",
    label="LinkedIn",
    hosts=("linkedin.com",),
    strategies=(
        extract_top_card,
        attribute_pattern_strategy,
        minimal_strategy('a[href*="company"]'),
    ),
    # Submit first: the final Easy Apply button also carries apply-ish markers
    rules=(
        ClassifierRule(ApplyFlow.SUBMIT, _is_submit),
        ClassifierRule(ApplyFlow.EASY_APPLY, _is_easy_apply),
        ClassifierRule(ApplyFlow.EXTERNAL_APPLY, _is_external_apply),
    ),
    control_tags=("button",),
    success_phrases=(
        "application sent",
        "your application was sent",
        "application submitted",
        "your profile was shared",
    ),
    apply_dialog_selector=".jobs-easy-apply-modal",
)
