"""Tests for job-board extraction and click classification."""

from bs4 import BeautifulSoup

from applytrack.models import ApplyFlow
from applytrack.page import Page
from applytrack.platforms import PLATFORM_REGISTRY, adapter_for_url
from applytrack.platforms.base import (
    ClassifierRule,
    ExtractedFields,
    Platform,
    PlatformAdapter,
    select_first,
)
from applytrack.platforms.linkedin import LINKEDIN
from applytrack.platforms.naukri import NAUKRI, strip_reviews

from sample_pages import (
    LINKEDIN_EASY_APPLY_MODAL_HTML,
    LINKEDIN_EXTERNAL_HTML,
    LINKEDIN_JOB_HTML,
    LINKEDIN_URL,
    NAUKRI_JOB_HTML,
    NAUKRI_URL,
)


def _click(adapter, page, selector):
    """Classify a click on the element matching ``selector``."""
    return adapter.classify(adapter.resolve_control(page.soup.select_one(selector)))


# --- LinkedIn extraction ---

def test_linkedin_top_card_extraction():
    record = PlatformAdapter(LINKEDIN).extract(Page(LINKEDIN_URL, LINKEDIN_JOB_HTML))

    assert record is not None
    assert record.job_title == "Backend Engineer"
    assert record.company_name == "Acme"
    assert record.location == "Berlin, Germany"
    assert record.description == "Build and run the APIs behind our platform."
    assert record.job_url == LINKEDIN_URL
    assert record.platform == "linkedin"


def test_linkedin_falls_back_to_class_patterns():
    html = """
    <h1>Site Reliability Engineer</h1>
    <span class="topcard__company-name">Initech</span>
    <span class="topcard__location">Remote</span>
    """
    record = PlatformAdapter(LINKEDIN).extract(Page(LINKEDIN_URL, html))

    assert record.job_title == "Site Reliability Engineer"
    assert record.company_name == "Initech"
    assert record.location == "Remote"


def test_linkedin_minimal_fallback():
    html = '<h1>QA Lead</h1><a href="/company/umbrella/">Umbrella</a>'
    record = PlatformAdapter(LINKEDIN).extract(Page(LINKEDIN_URL, html))

    assert record.job_title == "QA Lead"
    assert record.company_name == "Umbrella"
    assert record.location == ""
    assert record.description == ""


def test_extraction_gives_none_when_nothing_matches():
    page = Page(LINKEDIN_URL, "<h1>Only a title</h1><p>no company anywhere</p>")
    assert PlatformAdapter(LINKEDIN).extract(page) is None


def test_description_is_truncated():
    html = (
        '<h1 class="t-24 t-bold">Writer</h1>'
        '<div class="job-details-jobs-unified-top-card__company-name"><a>Acme</a></div>'
        f'<div class="jobs-description-content__text">{"x" * 6000}</div>'
    )
    record = PlatformAdapter(LINKEDIN).extract(Page(LINKEDIN_URL, html))
    assert len(record.description) == 5000


def test_raising_strategy_is_skipped():
    def broken(soup):
        raise RuntimeError("markup changed")

    def fallback(soup):
        return ExtractedFields(job_title="Engineer", company_name="Acme")

    platform = Platform(
        name="test",
        label="Test",
        hosts=("example.com",),
        strategies=(broken, fallback),
        rules=(),
    )
    record = PlatformAdapter(platform).extract(Page("https://example.com/job/1", ""))
    assert record.job_title == "Engineer"
    assert record.platform == "test"


def test_invalid_selector_is_skipped():
    soup = BeautifulSoup("<h1>Title</h1>", "html.parser")
    assert select_first(soup, ["h1[", "h1"]).get_text() == "Title"


# --- LinkedIn classification ---

def test_linkedin_easy_apply_click_on_inner_span():
    adapter = PlatformAdapter(LINKEDIN)
    page = Page(LINKEDIN_URL, LINKEDIN_JOB_HTML)

    span = page.soup.select_one(".jobs-apply-button span")
    control = adapter.resolve_control(span)

    assert control.name == "button"
    assert adapter.classify(control) is ApplyFlow.EASY_APPLY


def test_linkedin_submit_beats_apply_markers():
    adapter = PlatformAdapter(LINKEDIN)
    page = Page(LINKEDIN_URL, LINKEDIN_EASY_APPLY_MODAL_HTML)
    assert _click(adapter, page, 'button[aria-label="Submit application"] span') is ApplyFlow.SUBMIT

    soup = BeautifulSoup(
        '<button class="jobs-apply-button"><span>Submit application</span></button>', "html.parser"
    )
    assert adapter.classify(soup.button) is ApplyFlow.SUBMIT


def test_linkedin_external_apply():
    adapter = PlatformAdapter(LINKEDIN)
    page = Page(LINKEDIN_URL, LINKEDIN_EXTERNAL_HTML)
    assert _click(adapter, page, ".jobs-apply-button span") is ApplyFlow.EXTERNAL_APPLY


def test_unrelated_clicks_classify_as_none():
    adapter = PlatformAdapter(LINKEDIN)
    page = Page(LINKEDIN_URL, LINKEDIN_JOB_HTML)

    assert _click(adapter, page, ".jobs-save-button span") is None
    assert _click(adapter, page, "h1") is None
    assert adapter.classify(None) is None
    assert adapter.resolve_control(None) is None


def test_raising_rule_classifies_as_none():
    def broken(control):
        raise KeyError("class")

    platform = Platform(
        name="test",
        label="Test",
        hosts=("example.com",),
        strategies=(),
        rules=(ClassifierRule(ApplyFlow.EASY_APPLY, broken),),
    )
    soup = BeautifulSoup("<button>Easy Apply</button>", "html.parser")
    assert PlatformAdapter(platform).classify(soup.button) is None


# --- Naukri ---

def test_naukri_extraction_strips_rating():
    record = PlatformAdapter(NAUKRI).extract(Page(NAUKRI_URL, NAUKRI_JOB_HTML))

    assert record.job_title == "Data Analyst"
    assert record.company_name == "Acme Analytics"
    assert record.location == "Bengaluru"
    assert record.description == "Analyse sales data and build dashboards."
    assert record.platform == "naukri"


def test_strip_reviews_leaves_plain_names_alone():
    assert strip_reviews("Acme Analytics 4.3 1234 Reviews") == "Acme Analytics"
    assert strip_reviews("Acme Analytics 87 Reviews") == "Acme Analytics"
    assert strip_reviews("Studio 54") == "Studio 54"


def test_naukri_classification():
    adapter = PlatformAdapter(NAUKRI)
    page = Page(NAUKRI_URL, NAUKRI_JOB_HTML)

    assert _click(adapter, page, "#company-site-button") is ApplyFlow.EXTERNAL_APPLY
    assert _click(adapter, page, "#apply-button") is ApplyFlow.DIRECT_APPLY


def test_naukri_anchor_controls():
    adapter = PlatformAdapter(NAUKRI)
    soup = BeautifulSoup('<a href="#"><span>Apply on company site</span></a>', "html.parser")
    assert adapter.classify(adapter.resolve_control(soup.span)) is ApplyFlow.EXTERNAL_APPLY


# --- Registry ---

def test_adapter_for_url():
    assert adapter_for_url(LINKEDIN_URL).name == "linkedin"
    assert adapter_for_url(NAUKRI_URL).name == "naukri"
    assert adapter_for_url("https://in.linkedin.com/jobs/view/1").name == "linkedin"
    assert adapter_for_url("https://notlinkedin.com/jobs") is None
    assert adapter_for_url("https://example.com/") is None


def test_disabled_platform_is_not_picked():
    assert adapter_for_url(NAUKRI_URL, enabled=["linkedin"]) is None


def test_registry_lists_both_boards():
    assert set(PLATFORM_REGISTRY) == {"linkedin", "naukri"}


def test_extra_success_phrases_are_lowercased():
    adapter = adapter_for_url(NAUKRI_URL, extra_success_phrases={"naukri": ["Application Submitted"]})
    assert "application submitted" in adapter.success_phrases
    assert "applied successfully" in adapter.success_phrases
