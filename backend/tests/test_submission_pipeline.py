"""
ScribeJournal Backend — Submission Pipeline Tests
===================================================

What:  The draft state machine under concurrent, out-of-order async results.
How:   FakeCapability holds each transcription behind an asyncio.Event, so a
       test releases calls in any order it wants and then lets the loop
       settle before asserting.

What we test:
    ✅ Out-of-order resolution lands each text on its own page
    ✅ Results for deleted pages and reset drafts are discarded
    ✅ Exactly one automatic title; manual edits always win
    ✅ Single-flight submit, validation before any store call
    ✅ Failed submit keeps the draft; acknowledge and retry
    ✅ Unwrapped store errors and cancellation still end in submit_failed
    ✅ No pages join a draft while it is being saved
"""

import asyncio

import pytest

from scribejournal.exceptions import (
    CapabilityFailure,
    NotFoundError,
    SubmitInProgressError,
    ValidationError,
)
from scribejournal.services.capability_base import SummaryMode
from scribejournal.services.file_service import ImageUpload
from scribejournal.services.page_collection import TRANSCRIPTION_ERROR_TEXT, TranscriptionStatus
from scribejournal.services.submission_pipeline import (
    SUBMIT_FAILED_MESSAGE,
    DraftState,
    SubmissionPhase,
    TitleInference,
)
from tests.conftest import FIXED_NOW, png_upload, settle


def uploads(*payloads):
    return [png_upload(f"page{i}.png", payload) for i, payload in enumerate(payloads)]


class TestTranscriptionFanOut:
    @pytest.mark.asyncio
    async def test_out_of_order_results_land_on_their_own_pages(self, pipeline, capability):
        payloads = [b"img-0", b"img-1", b"img-2"]
        gates = [capability.gate(p) for p in payloads]
        for i, p in enumerate(payloads):
            capability.transcripts[p] = f"page {i} text"

        pipeline.add_images(uploads(*payloads))
        await settle()
        assert pipeline.state is DraftState.UPLOADING

        for i in (2, 0, 1):
            gates[i].set()
            await settle()

        await pipeline.drain()
        assert [p.transcription for p in pipeline.pages] == ["page 0 text", "page 1 text", "page 2 text"]

    @pytest.mark.asyncio
    async def test_result_for_deleted_page_is_discarded(self, pipeline, capability):
        gate_a = capability.gate(b"img-a")
        capability.transcripts[b"img-a"] = "from A"
        capability.transcripts[b"img-b"] = "from B"

        pipeline.add_images(uploads(b"img-a", b"img-b"))
        await settle()
        pipeline.delete_page(0)

        gate_a.set()
        await pipeline.drain()

        assert len(pipeline.pages) == 1
        assert pipeline.pages[0].transcription == "from B"
        assert all(p.transcription != "from A" for p in pipeline.pages)

    @pytest.mark.asyncio
    async def test_failed_page_gets_sentinel_and_others_continue(self, pipeline, capability):
        capability.transcripts[b"bad"] = CapabilityFailure(message="boom", capability="transcribe")
        capability.transcripts[b"good"] = "fine"

        pipeline.add_images(uploads(b"bad", b"good"))
        await pipeline.drain()

        assert pipeline.pages[0].status is TranscriptionStatus.FAILED
        assert pipeline.pages[0].transcription == TRANSCRIPTION_ERROR_TEXT
        assert pipeline.pages[1].transcription == "fine"
        assert pipeline.state is DraftState.READY_TO_SUBMIT

    @pytest.mark.asyncio
    async def test_unexpected_error_is_treated_as_failure(self, pipeline, capability):
        capability.transcripts[b"weird"] = RuntimeError("sdk exploded")
        pipeline.add_images(uploads(b"weird"))
        await pipeline.drain()
        assert pipeline.pages[0].status is TranscriptionStatus.FAILED

    @pytest.mark.asyncio
    async def test_failed_page_can_be_deleted(self, pipeline, capability):
        capability.transcripts[b"bad"] = CapabilityFailure(message="boom", capability="transcribe")
        pipeline.add_images(uploads(b"bad"))
        await pipeline.drain()
        pipeline.delete_page(0)
        assert len(pipeline.pages) == 0
        assert pipeline.state is DraftState.IDLE

    def test_invalid_file_rejects_whole_batch_before_any_call(self, pipeline, capability):
        batch = [
            png_upload("ok.png", b"ok"),
            ImageUpload(filename="notes.pdf", data=b"%PDF", content_type="application/pdf"),
        ]
        with pytest.raises(ValidationError):
            pipeline.add_images(batch)
        assert len(pipeline.pages) == 0
        assert capability.transcribe_calls == []
        assert pipeline.state is DraftState.IDLE

    def test_delete_unknown_index_raises_not_found(self, pipeline):
        with pytest.raises(NotFoundError):
            pipeline.delete_page(0)


class TestTitleInference:
    @pytest.mark.asyncio
    async def test_exactly_one_title_request_per_draft(self, pipeline, capability):
        gate_b = capability.gate(b"b")
        pipeline.add_images(uploads(b"a", b"b"))
        await settle()
        gate_b.set()
        await pipeline.drain()

        pipeline.add_images(uploads(b"c"))
        await pipeline.drain()

        assert capability.title_calls == 1
        assert pipeline.title == "A Generated Title"
        assert pipeline.title_inference is TitleInference.DONE

    @pytest.mark.asyncio
    async def test_title_uses_only_resolved_pages(self, pipeline, capability):
        capability.gate(b"slow")
        capability.transcripts[b"fast"] = "fast text"
        pipeline.add_images(uploads(b"slow", b"fast"))
        await settle()

        title_inputs = [text for text, mode in capability.summarize_calls if mode is SummaryMode.TITLE]
        assert title_inputs == ["fast text"]
        pipeline.cancel_pending()

    @pytest.mark.asyncio
    async def test_awaiting_title_state(self, pipeline, capability):
        capability.title_gate = asyncio.Event()
        pipeline.add_images(uploads(b"a"))
        await settle()
        assert pipeline.state is DraftState.AWAITING_TITLE
        assert pipeline.snapshot().title_generating is True

        capability.title_gate.set()
        await pipeline.drain()
        assert pipeline.state is DraftState.READY_TO_SUBMIT

    @pytest.mark.asyncio
    async def test_manual_edit_during_inference_wins(self, pipeline, capability):
        capability.title_gate = asyncio.Event()
        pipeline.add_images(uploads(b"a"))
        await settle()

        pipeline.set_title("My own title")
        capability.title_gate.set()
        await pipeline.drain()

        assert pipeline.title == "My own title"
        assert capability.title_calls == 1

    @pytest.mark.asyncio
    async def test_manual_edit_before_any_page_suppresses_inference(self, pipeline, capability):
        pipeline.set_title("Typed first")
        pipeline.add_images(uploads(b"a"))
        await pipeline.drain()

        assert capability.title_calls == 0
        assert pipeline.title_inference is TitleInference.SUPPRESSED

    @pytest.mark.asyncio
    async def test_clearing_title_manually_does_not_restart_inference(self, pipeline, capability):
        pipeline.set_title("")
        pipeline.add_images(uploads(b"a"))
        await pipeline.drain()
        assert capability.title_calls == 0
        assert pipeline.title == ""

    @pytest.mark.asyncio
    async def test_title_failure_is_silent(self, pipeline, capability):
        capability.title_error = CapabilityFailure(message="no title", capability="summarize")
        pipeline.add_images(uploads(b"a"))
        await pipeline.drain()

        assert pipeline.title == ""
        assert pipeline.last_error is None
        assert pipeline.state is DraftState.READY_TO_SUBMIT
        assert pipeline.can_submit is False

    @pytest.mark.asyncio
    async def test_failed_page_still_triggers_title_request(self, pipeline, capability):
        capability.transcripts[b"a"] = CapabilityFailure(message="x", capability="transcribe")
        pipeline.add_images(uploads(b"a"))
        await pipeline.drain()

        title_inputs = [text for text, mode in capability.summarize_calls if mode is SummaryMode.TITLE]
        assert title_inputs == [TRANSCRIPTION_ERROR_TEXT]
        assert pipeline.title == "A Generated Title"


class TestSubmit:
    async def ready_draft(self, pipeline, capability, texts=("Hello", "World")):
        payloads = [f"p{i}".encode() for i in range(len(texts))]
        for payload, text in zip(payloads, texts):
            capability.transcripts[payload] = text
        pipeline.add_images(uploads(*payloads))
        await pipeline.drain()

    @pytest.mark.asyncio
    async def test_submit_persists_combined_content_and_resets(self, pipeline, capability, store):
        await self.ready_draft(pipeline, capability)
        pipeline.set_title("  First day  ")

        entry = await pipeline.submit()

        assert store.create_calls == 1
        assert entry.title == "First day"
        assert entry.content == "Hello\n\n---\n\nWorld"
        assert entry.owner_id == "user-1"
        assert entry.created_at == FIXED_NOW

        assert pipeline.state is DraftState.SUBMITTED
        assert len(pipeline.pages) == 0
        assert pipeline.pages.cursor is None
        assert pipeline.title == ""
        assert pipeline.title_inference is TitleInference.NOT_REQUESTED

    @pytest.mark.asyncio
    async def test_blank_title_rejected_before_store_call(self, pipeline, capability, store):
        capability.title_error = CapabilityFailure(message="x", capability="summarize")
        await self.ready_draft(pipeline, capability)
        pipeline.set_title("   ")

        with pytest.raises(ValidationError):
            await pipeline.submit()
        assert store.create_calls == 0

    @pytest.mark.asyncio
    async def test_empty_draft_rejected(self, pipeline, store):
        pipeline.set_title("Nothing here")
        with pytest.raises(ValidationError):
            await pipeline.submit()
        assert store.create_calls == 0

    @pytest.mark.asyncio
    async def test_pending_pages_rejected(self, pipeline, capability, store):
        capability.gate(b"slow")
        pipeline.add_images(uploads(b"slow"))
        pipeline.set_title("Wait")
        with pytest.raises(ValidationError):
            await pipeline.submit()
        assert store.create_calls == 0
        pipeline.cancel_pending()

    @pytest.mark.asyncio
    async def test_second_submit_while_in_flight_is_rejected(self, pipeline, capability, store):
        await self.ready_draft(pipeline, capability)
        store.create_gate = asyncio.Event()

        first = asyncio.create_task(pipeline.submit())
        await settle()
        assert pipeline.state is DraftState.SUBMITTING
        assert pipeline.can_submit is False

        with pytest.raises(SubmitInProgressError):
            await pipeline.submit()

        store.create_gate.set()
        await first
        assert store.create_calls == 1
        assert len(store.entries) == 1

    @pytest.mark.asyncio
    async def test_failed_submit_keeps_draft_and_allows_retry(self, pipeline, capability, store, store_failure):
        await self.ready_draft(pipeline, capability)
        store.fail_create = store_failure

        with pytest.raises(CapabilityFailure):
            await pipeline.submit()

        assert pipeline.state is DraftState.SUBMIT_FAILED
        assert pipeline.last_error == store_failure.message
        assert pipeline.title == "A Generated Title"
        assert [p.transcription for p in pipeline.pages] == ["Hello", "World"]

        pipeline.acknowledge_failure()
        assert pipeline.state is DraftState.READY_TO_SUBMIT
        assert pipeline.last_error is None

        store.fail_create = None
        await pipeline.submit()
        assert pipeline.state is DraftState.SUBMITTED
        assert len(store.entries) == 1

    @pytest.mark.asyncio
    async def test_retry_directly_from_failed(self, pipeline, capability, store, store_failure):
        await self.ready_draft(pipeline, capability)
        store.fail_create = store_failure
        with pytest.raises(CapabilityFailure):
            await pipeline.submit()

        store.fail_create = None
        entry = await pipeline.submit()
        assert entry.content == "Hello\n\n---\n\nWorld"

    @pytest.mark.asyncio
    async def test_stale_title_does_not_reach_next_draft(self, pipeline, capability, store):
        capability.title_gate = asyncio.Event()
        capability.transcripts[b"p0"] = "Hello"
        pipeline.add_images(uploads(b"p0"))
        await settle()
        pipeline.set_title("Manual")

        await pipeline.submit()
        capability.title_gate.set()
        await pipeline.drain()

        assert pipeline.title == ""
        assert pipeline.state is DraftState.SUBMITTED

    @pytest.mark.asyncio
    async def test_unexpected_store_error_ends_in_failed(self, pipeline, capability, store):
        await self.ready_draft(pipeline, capability)
        store.fail_create = RuntimeError("connection reset by peer")

        with pytest.raises(RuntimeError):
            await pipeline.submit()

        assert pipeline.state is DraftState.SUBMIT_FAILED
        assert pipeline.last_error == SUBMIT_FAILED_MESSAGE
        assert len(pipeline.pages) == 2

        store.fail_create = None
        entry = await pipeline.submit()
        assert entry.content == "Hello\n\n---\n\nWorld"
        assert pipeline.state is DraftState.SUBMITTED

    @pytest.mark.asyncio
    async def test_cancelled_submit_ends_in_failed(self, pipeline, capability, store):
        await self.ready_draft(pipeline, capability)
        store.create_gate = asyncio.Event()

        task = asyncio.create_task(pipeline.submit())
        await settle()
        assert pipeline.state is DraftState.SUBMITTING
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert pipeline.state is DraftState.SUBMIT_FAILED
        assert pipeline.can_submit is True

        store.create_gate = None
        await pipeline.submit()
        assert pipeline.state is DraftState.SUBMITTED
        assert len(store.entries) == 1

    @pytest.mark.asyncio
    async def test_adding_pages_during_submit_is_rejected(self, pipeline, capability, store):
        await self.ready_draft(pipeline, capability)
        store.create_gate = asyncio.Event()

        task = asyncio.create_task(pipeline.submit())
        await settle()
        with pytest.raises(SubmitInProgressError):
            pipeline.add_images(uploads(b"late"))
        assert b"late" not in capability.transcribe_calls

        store.create_gate.set()
        await task
        assert store.entries[0].content == "Hello\n\n---\n\nWorld"

        capability.transcripts[b"late"] = "late page"
        pipeline.add_images(uploads(b"late"))
        await pipeline.drain()
        assert [p.transcription for p in pipeline.pages] == ["late page"]

    @pytest.mark.asyncio
    async def test_next_draft_gets_its_own_title(self, pipeline, capability, store):
        await self.ready_draft(pipeline, capability)
        await pipeline.submit()

        capability.title = "Second Title"
        capability.transcripts[b"next"] = "next page"
        pipeline.add_images(uploads(b"next"))
        await pipeline.drain()

        assert capability.title_calls == 2
        assert pipeline.title == "Second Title"
        assert pipeline.state is DraftState.READY_TO_SUBMIT


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_snapshot_reflects_pages_and_state(self, pipeline, capability):
        capability.gate(b"slow")
        capability.transcripts[b"fast"] = "done text"
        pipeline.add_images(uploads(b"slow", b"fast"))
        await settle()

        snap = pipeline.snapshot()
        assert snap.state is DraftState.UPLOADING
        assert snap.cursor == 0
        assert [(p.index, p.status, p.transcription) for p in snap.pages] == [
            (0, "pending", None),
            (1, "done", "done text"),
        ]
        assert snap.can_submit is False
        pipeline.cancel_pending()

    def test_initial_state(self, pipeline):
        snap = pipeline.snapshot()
        assert snap.state is DraftState.IDLE
        assert snap.pages == ()
        assert snap.cursor is None
        assert pipeline._submission is SubmissionPhase.IDLE
