"""The adapter every job board is read through.

A board is described by a ``Platform`` value: which hosts it serves, an
ordered list of extraction strategies, and an ordered list of classifier
rules. ``PlatformAdapter`` runs those against a ``Page``. Adding a board
means adding a ``Platform`` and registering it, not subclassing.

Job-board markup changes often and without notice, so nothing here raises:
a strategy that throws is just a non-match, and a click we can't read
classifies as ``None``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from bs4 import BeautifulSoup, Tag

from applytrack.models import DESCRIPTION_LIMIT, ApplyFlow, JobRecord, utc_now_iso
from applytrack.page import Page, PagePredicate

logger = logging.getLogger(__name__)

# Maximum number of ancestors walked when resolving a click target
CONTROL_SEARCH_DEPTH = 5

_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ExtractedFields:
    """Raw fields one strategy pulled out of the page."""

    job_title: str = ""
    company_name: str = ""
    location: str = ""
    description: str = ""


@dataclass(frozen=True)
class ControlInfo:
    """What the classifier gets to see about a clicked control."""

    text: str
    aria: str
    classes: str
    element_id: str
    tag: str


ExtractionStrategy = Callable[[BeautifulSoup], Optional[ExtractedFields]]


@dataclass(frozen=True)
class ClassifierRule:
    flow: ApplyFlow
    matches: Callable[[ControlInfo], bool]


@dataclass(frozen=True)
class Platform:
    """Everything board-specific about reading one job board."""

    name: str  # platform tag sent to the backend, e.g. "linkedin"
    label: str
    hosts: tuple[str, ...]
    strategies: tuple[ExtractionStrategy, ...]
    rules: tuple[ClassifierRule, ...]
    control_tags: tuple[str, ...] = ("button",)
    success_phrases: tuple[str, ...] = ()
    apply_dialog_selector: Optional[str] = None
    clean_company: Optional[Callable[[str], str]] = None


# ── Text helpers ───────────────────────────────────────────────────────────

def clean_text(text: str | None) -> str:
    """Collapse runs of whitespace and trim the ends."""
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


def element_text(el: Tag | None) -> str:
    if el is None:
        return ""
    return clean_text(el.get_text(" ", strip=True))


def select_first(soup: BeautifulSoup, selectors: list[str] | str) -> Tag | None:
    """Return the first element matched by any of ``selectors``, in order.

    Invalid selectors are logged and skipped.
    """
    if isinstance(selectors, str):
        selectors = [selectors]

    for selector in selectors:
        try:
            el = soup.select_one(selector)
        except Exception as exc:
            logger.warning("Invalid selector %r: %s", selector, exc)
            continue
        if el is not None:
            return el
    return None


def select_text(soup: BeautifulSoup, selectors: list[str] | str) -> str:
    return element_text(select_first(soup, selectors))


# ── Shared strategies ──────────────────────────────────────────────────────

def attribute_pattern_strategy(soup: BeautifulSoup) -> ExtractedFields | None:
    """Generic layout: an ``h1`` plus elements whose class mentions the field."""
    title = select_text(soup, "h1")
    company = select_text(soup, '[class*="company"]')
    if not title or not company:
        return None
    return ExtractedFields(
        job_title=title,
        company_name=company,
        location=select_text(soup, '[class*="location"]'),
        description=select_text(soup, '[class*="description"]'),
    )


def minimal_strategy(company_selector: str) -> ExtractionStrategy:
    """Last resort: just a title and a company, nothing else."""

    def strategy(soup: BeautifulSoup) -> ExtractedFields | None:
        title = select_text(soup, "h1")
        company = select_text(soup, company_selector)
        if not title or not company:
            return None
        return ExtractedFields(job_title=title, company_name=company)

    return strategy


# ── Adapter ────────────────────────────────────────────────────────────────

class PlatformAdapter:
    """Reads job records and classifies clicks for one job board."""

    def __init__(self, platform: Platform, extra_success_phrases: list[str] | None = None):
        self.platform = platform
        phrases = list(platform.success_phrases) + list(extra_success_phrases or [])
        self.success_phrases = tuple(p.lower() for p in phrases)

    @property
    def name(self) -> str:
        return self.platform.name

    def handles(self, host: str) -> bool:
        host = host.lower()
        return any(host == h or host.endswith("." + h) for h in self.platform.hosts)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract(self, page: Page) -> JobRecord | None:
        """Build a job record from the page, or None if no strategy matched.

        Strategies run in order; the first one that yields both a title and
        a company name wins.
        """
        for index, strategy in enumerate(self.platform.strategies, start=1):
            try:
                fields = strategy(page.soup)
            except Exception as exc:
                logger.warning("[%s] Extraction strategy %d failed: %s", self.name, index, exc)
                continue

            if fields is None:
                continue

            record = self._build_record(fields, page.url)
            if record is not None:
                logger.debug("[%s] Extracted %r using strategy %d", self.name, record, index)
                return record

        logger.info("[%s] Could not extract job details from %s", self.name, page.url)
        return None

    def _build_record(self, fields: ExtractedFields, url: str) -> JobRecord | None:
        title = clean_text(fields.job_title)
        company = clean_text(fields.company_name)
        if company and self.platform.clean_company:
            company = clean_text(self.platform.clean_company(company))
        if not title or not company:
            return None

        return JobRecord(
            job_title=title,
            company_name=company,
            job_url=url,
            platform=self.name,
            location=clean_text(fields.location),
            description=clean_text(fields.description)[:DESCRIPTION_LIMIT],
            applied_at=utc_now_iso(),
        )

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def resolve_control(self, target: Tag | None) -> Tag | None:
        """Walk up from a click target to the control that was clicked."""
        el = target
        for _ in range(CONTROL_SEARCH_DEPTH):
            if not isinstance(el, Tag) or el.name in ("body", "html", "[document]"):
                return None
            if el.name in self.platform.control_tags or el.get("role") == "button":
                return el
            el = el.parent
        return None

    def classify(self, control: Tag | None) -> ApplyFlow | None:
        """Return the application flow a control starts, or None if unrelated.

        Rules are checked in order and the first match wins, so boards list
        their most specific rule first.
        """
        if control is None:
            return None
        try:
            info = describe_control(control)
            for rule in self.platform.rules:
                if rule.matches(info):
                    logger.debug("[%s] Control %r classified as %s", self.name, info.text[:50], rule.flow.value)
                    return rule.flow
        except Exception as exc:
            logger.warning("[%s] Could not classify control: %s", self.name, exc)
        return None

    # ------------------------------------------------------------------
    # Completion signal
    # ------------------------------------------------------------------

    def apply_dialog_open(self, page: Page) -> bool:
        selector = self.platform.apply_dialog_selector
        return bool(selector) and page.select_one(selector) is not None

    def completion_signal(self, dialog_was_open: bool) -> PagePredicate:
        """Predicate that holds once the page shows the application went through."""
        selector = self.platform.apply_dialog_selector
        phrases = self.success_phrases

        def signal(soup: BeautifulSoup) -> bool:
            for dialog in soup.select('[role="dialog"]'):
                text = element_text(dialog).lower()
                if any(phrase in text for phrase in phrases):
                    return True
            if dialog_was_open and selector:
                return soup.select_one(selector) is None
            return False

        return signal


def describe_control(control: Tag) -> ControlInfo:
    classes = control.get("class") or []
    if isinstance(classes, str):
        classes = [classes]
    return ControlInfo(
        text=element_text(control).lower(),
        aria=clean_text(control.get("aria-label") or "").lower(),
        classes=" ".join(classes),
        element_id=control.get("id") or "",
        tag=control.name or "",
    )
