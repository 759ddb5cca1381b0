"""Tests for the per-page application flow state machine."""

import asyncio

from applytrack.models import ApplyFlow
from applytrack.page import Page
from applytrack.platforms.base import PlatformAdapter
from applytrack.platforms.linkedin import LINKEDIN
from applytrack.platforms.naukri import NAUKRI
from applytrack.state_machine import ApplyState, ApplyStateMachine

from sample_pages import (
    LINKEDIN_EASY_APPLY_MODAL_HTML,
    LINKEDIN_EXTERNAL_HTML,
    LINKEDIN_JOB_HTML,
    LINKEDIN_SUCCESS_HTML,
    LINKEDIN_URL,
    NAUKRI_JOB_HTML,
    NAUKRI_URL,
)

EASY_APPLY = ".jobs-apply-button span"
SUBMIT = 'button[aria-label="Submit application"] span'


class Recorder:
    def __init__(self):
        self.completed = []
        self.pending = []

    async def on_complete(self, record):
        self.completed.append(record)

    async def on_pending(self, record, flow):
        self.pending.append((record, flow))


def _machine(page, platform=LINKEDIN, timeout=0.5, **kwargs):
    recorder = Recorder()
    machine = ApplyStateMachine(
        PlatformAdapter(platform),
        page,
        on_complete=recorder.on_complete,
        on_pending=recorder.on_pending,
        observation_timeout=timeout,
        settle_delay=0,
        **kwargs,
    )
    return machine, recorder


async def _click(machine, selector):
    return await machine.handle_click(machine.page.soup.select_one(selector))


def test_easy_apply_flow_completes_on_success_dialog():
    async def scenario():
        page = Page(LINKEDIN_URL, LINKEDIN_JOB_HTML)
        machine, recorder = _machine(page)

        assert await _click(machine, EASY_APPLY) is ApplyFlow.EASY_APPLY
        assert machine.state is ApplyState.EASY_APPLY_STARTED

        page.update(LINKEDIN_EASY_APPLY_MODAL_HTML)
        assert await _click(machine, SUBMIT) is ApplyFlow.SUBMIT
        assert machine.state is ApplyState.AWAITING_CONFIRMATION

        page.update(LINKEDIN_SUCCESS_HTML)
        await machine.observation
        return machine, recorder

    machine, recorder = asyncio.run(scenario())

    assert machine.last_outcome is ApplyState.COMPLETE
    assert machine.state is ApplyState.IDLE
    assert len(recorder.completed) == 1
    # the record comes from the job page, not the success dialog
    assert recorder.completed[0].job_title == "Backend Engineer"
    assert recorder.completed[0].company_name == "Acme"


def test_click_returns_before_confirmation_is_seen():
    async def scenario():
        page = Page(LINKEDIN_URL, LINKEDIN_JOB_HTML)
        machine, recorder = _machine(page, timeout=2)
        await _click(machine, EASY_APPLY)
        page.update(LINKEDIN_EASY_APPLY_MODAL_HTML)
        await _click(machine, SUBMIT)

        still_waiting = not machine.observation.done()
        page.update(LINKEDIN_SUCCESS_HTML)
        await machine.observation
        return still_waiting, recorder

    still_waiting, recorder = asyncio.run(scenario())
    assert still_waiting
    assert len(recorder.completed) == 1


def test_closing_the_apply_dialog_counts_as_success():
    async def scenario():
        page = Page(LINKEDIN_URL, LINKEDIN_JOB_HTML)
        machine, recorder = _machine(page)
        await _click(machine, EASY_APPLY)
        page.update(LINKEDIN_EASY_APPLY_MODAL_HTML)
        await _click(machine, SUBMIT)

        page.update(LINKEDIN_JOB_HTML)
        await machine.observation
        return machine, recorder

    machine, recorder = asyncio.run(scenario())
    assert machine.last_outcome is ApplyState.COMPLETE
    assert len(recorder.completed) == 1


def test_no_success_signal_abandons_the_flow():
    async def scenario():
        page = Page(LINKEDIN_URL, LINKEDIN_JOB_HTML)
        machine, recorder = _machine(page, timeout=0.05)
        await _click(machine, EASY_APPLY)
        page.update(LINKEDIN_EASY_APPLY_MODAL_HTML)
        await _click(machine, SUBMIT)
        await machine.observation
        return machine, recorder

    machine, recorder = asyncio.run(scenario())
    assert machine.last_outcome is ApplyState.ABANDONED
    assert machine.state is ApplyState.IDLE
    assert recorder.completed == []
    assert recorder.pending == []


def test_submit_outside_easy_apply_is_ignored():
    async def scenario():
        page = Page(LINKEDIN_URL, LINKEDIN_EASY_APPLY_MODAL_HTML)
        machine, recorder = _machine(page)
        flow = await _click(machine, SUBMIT)
        return flow, machine, recorder

    flow, machine, recorder = asyncio.run(scenario())
    assert flow is ApplyFlow.SUBMIT
    assert machine.state is ApplyState.IDLE
    assert machine.observation is None
    assert recorder.completed == []


def test_missing_snapshot_is_re_extracted_on_success():
    async def scenario():
        page = Page(LINKEDIN_URL, "<button><span>Easy Apply</span></button>")
        machine, recorder = _machine(page)
        await _click(machine, "button span")
        assert machine.snapshot is None

        page.update(LINKEDIN_EASY_APPLY_MODAL_HTML)
        await _click(machine, SUBMIT)
        page.update(LINKEDIN_JOB_HTML + LINKEDIN_SUCCESS_HTML)
        await machine.observation
        return recorder

    recorder = asyncio.run(scenario())
    assert [r.job_title for r in recorder.completed] == ["Backend Engineer"]


def test_incomplete_job_details_abandon_the_flow():
    async def scenario():
        page = Page(LINKEDIN_URL, "<button><span>Easy Apply</span></button>")
        machine, recorder = _machine(page)
        await _click(machine, "button span")
        page.update(LINKEDIN_EASY_APPLY_MODAL_HTML)
        await _click(machine, SUBMIT)
        page.update(LINKEDIN_SUCCESS_HTML)
        await machine.observation
        return machine, recorder

    machine, recorder = asyncio.run(scenario())
    assert machine.last_outcome is ApplyState.ABANDONED
    assert recorder.completed == []


def test_cancel_abandons_the_observation():
    async def scenario():
        page = Page(LINKEDIN_URL, LINKEDIN_JOB_HTML)
        machine, recorder = _machine(page, timeout=5)
        await _click(machine, EASY_APPLY)
        page.update(LINKEDIN_EASY_APPLY_MODAL_HTML)
        await _click(machine, SUBMIT)
        await machine.cancel()
        return machine, recorder

    machine, recorder = asyncio.run(scenario())
    assert machine.last_outcome is ApplyState.ABANDONED
    assert machine.observation.cancelled()
    assert recorder.completed == []


def test_external_apply_is_cached_for_confirmation():
    async def scenario():
        page = Page(LINKEDIN_URL, LINKEDIN_EXTERNAL_HTML)
        machine, recorder = _machine(page)
        flow = await _click(machine, ".jobs-apply-button")
        return flow, machine, recorder

    flow, machine, recorder = asyncio.run(scenario())
    assert flow is ApplyFlow.EXTERNAL_APPLY
    assert machine.last_outcome is ApplyState.EXTERNAL_APPLY_CACHED
    assert machine.state is ApplyState.IDLE
    assert recorder.completed == []
    [(record, cached_flow)] = recorder.pending
    assert record.job_title == "Platform Engineer"
    assert record.company_name == "Globex"
    assert cached_flow is ApplyFlow.EXTERNAL_APPLY


def test_external_apply_without_job_details_is_abandoned():
    async def scenario():
        page = Page(LINKEDIN_URL, "<button>Apply</button>")
        machine, recorder = _machine(page)
        await _click(machine, "button")
        return machine, recorder

    machine, recorder = asyncio.run(scenario())
    assert machine.last_outcome is ApplyState.ABANDONED
    assert recorder.pending == []


def test_direct_apply_waits_for_confirmation_by_default():
    async def scenario():
        page = Page(NAUKRI_URL, NAUKRI_JOB_HTML)
        machine, recorder = _machine(page, platform=NAUKRI)
        await _click(machine, "#apply-button")
        return recorder

    recorder = asyncio.run(scenario())
    assert recorder.completed == []
    assert [flow for _, flow in recorder.pending] == [ApplyFlow.DIRECT_APPLY]


def test_direct_apply_can_be_tracked_immediately():
    async def scenario():
        page = Page(NAUKRI_URL, NAUKRI_JOB_HTML)
        machine, recorder = _machine(page, platform=NAUKRI, direct_apply_requires_confirmation=False)
        await _click(machine, "#apply-button")
        return recorder

    recorder = asyncio.run(scenario())
    assert recorder.pending == []
    assert [r.company_name for r in recorder.completed] == ["Acme Analytics"]


def test_failing_sink_does_not_escape_the_click():
    async def boom(record, flow):
        raise RuntimeError("storage full")

    async def scenario():
        page = Page(LINKEDIN_URL, LINKEDIN_EXTERNAL_HTML)
        machine, _ = _machine(page)
        machine.on_pending = boom
        flow = await _click(machine, ".jobs-apply-button")
        return flow, machine

    flow, machine = asyncio.run(scenario())
    assert flow is ApplyFlow.EXTERNAL_APPLY
    assert machine.state is ApplyState.IDLE
