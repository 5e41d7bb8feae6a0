"""Tests for the step-by-step wizard."""

import asyncio

import pytest

from pdfcast.errors import InputValidationError, WizardTransitionError
from pdfcast.models import (
    Language,
    PersonalVoiceRole,
    SponsorshipKind,
    SponsorshipPosition,
    WizardStep,
)
from pdfcast.pipeline import PipelineExecutor, validate_config
from pdfcast.wizard import PodcastWizard
from tests.conftest import FEW_WORDS_SCRIPT, SAMPLE_QUESTIONS, SAMPLE_SCRIPT, FakeServices


@pytest.fixture
def wizard(executor, settings):
    return PodcastWizard(executor, settings)


def _ready_for_processing(wizard):
    wizard.set_script(SAMPLE_SCRIPT, "quantum_basics.pdf")
    wizard.next()
    wizard.select_voice("en-male-1")
    wizard.next()
    wizard.next()
    wizard.next()
    assert wizard.step is WizardStep.PROCESSING


class TestSteps:
    def test_starts_at_upload(self, wizard):
        assert wizard.step is WizardStep.UPLOAD
        assert wizard.step_number == 1
        assert wizard.progress_percent == pytest.approx(100 / 6)

    def test_upload_requires_script(self, wizard):
        with pytest.raises(InputValidationError):
            wizard.next()
        assert wizard.step is WizardStep.UPLOAD

    def test_configure_requires_voice(self, wizard):
        wizard.set_script(SAMPLE_SCRIPT)
        wizard.next()
        with pytest.raises(InputValidationError):
            wizard.next()
        wizard.select_voice("en-female-2")
        assert wizard.next() is WizardStep.SPONSORSHIP

    def test_optional_steps_can_be_skipped(self, wizard):
        _ready_for_processing(wizard)
        assert wizard.config.sponsorships == []
        assert wizard.config.personal_voice is None

    def test_previous_clamps_at_upload(self, wizard):
        assert wizard.previous() is WizardStep.UPLOAD

    def test_previous_keeps_config(self, wizard):
        wizard.set_script(SAMPLE_SCRIPT)
        wizard.next()
        wizard.select_voice("en-male-1")
        wizard.previous()
        assert wizard.step is WizardStep.UPLOAD
        assert wizard.config.narrator_voice_id == "en-male-1"

    def test_processing_needs_successful_run(self, wizard):
        _ready_for_processing(wizard)
        with pytest.raises(WizardTransitionError):
            wizard.next()

    def test_voice_step_validates_whole_config(self, wizard):
        wizard.set_script(SAMPLE_SCRIPT)
        wizard.next()
        wizard.select_voice("en-male-1")
        wizard.next()
        wizard.next()
        # Slip an invalid sponsorship past the sponsorship step
        wizard.apply(sponsorships=[{"content": "Acme", "position": "custom"}])
        with pytest.raises(InputValidationError):
            wizard.next()
        assert wizard.step is WizardStep.VOICE

    def test_voice_step_rejects_script_too_short_for_questions(self, wizard, voice_sample):
        wizard.set_script(FEW_WORDS_SCRIPT)
        wizard.next()
        wizard.select_voice("en-male-1")
        wizard.next()
        wizard.next()
        asyncio.run(wizard.set_personal_voice(voice_sample, preview_questions=False))
        with pytest.raises(InputValidationError, match="3 words"):
            wizard.next()
        assert wizard.step is WizardStep.VOICE


class TestConfigure:
    def test_language_change_clears_voice(self, wizard):
        wizard.select_voice("en-male-1")
        wizard.select_language(Language.HEBREW)
        assert wizard.config.language is Language.HEBREW
        assert wizard.config.narrator_voice_id == ""

    def test_same_language_keeps_voice(self, wizard):
        wizard.select_voice("en-male-1")
        wizard.select_language("english")
        assert wizard.config.narrator_voice_id == "en-male-1"

    def test_language_and_voice_in_one_delta(self, wizard):
        wizard.apply(language=Language.HEBREW, narrator_voice_id="he-female-1")
        assert wizard.config.narrator_voice_id == "he-female-1"

    def test_voice_must_match_language(self, wizard):
        with pytest.raises(InputValidationError):
            wizard.select_voice("he-male-2")
        assert wizard.config.narrator_voice_id == ""

    def test_apply_replaces_config(self, wizard):
        before = wizard.config
        after = wizard.apply(script="new text")
        assert before.script == ""
        assert after is wizard.config


class TestSponsorshipStep:
    def test_text_follows_current_narrator(self, wizard):
        wizard.select_voice("en-female-1")
        spot = wizard.add_sponsorship("Brought to you by Acme")
        assert spot.voice_id is None
        assert spot.position is SponsorshipPosition.BEGINNING
        assert spot.custom_percent is None

    def test_explicit_sponsor_voice_kept(self, wizard):
        spot = wizard.add_sponsorship("Acme", voice_id="en-male-3")
        assert spot.voice_id == "en-male-3"

    def test_language_change_after_sponsorship(self, wizard):
        wizard.set_script(SAMPLE_SCRIPT)
        wizard.select_voice("en-male-1")
        wizard.add_sponsorship("Brought to you by Acme")
        wizard.select_language(Language.HEBREW)
        wizard.select_voice("he-female-1")
        validate_config(wizard.config, wizard.settings)

    def test_sponsor_read_by_latest_narrator(self, settings):
        services = FakeServices()
        wizard = PodcastWizard(PipelineExecutor(services, settings), settings)
        wizard.set_script(SAMPLE_SCRIPT)
        wizard.next()
        wizard.select_voice("en-male-1")
        wizard.next()
        wizard.add_sponsorship("Brought to you by Acme")
        wizard.previous()
        wizard.select_voice("en-female-2")
        wizard.next()
        wizard.next()
        wizard.next()
        asyncio.run(wizard.run_processing())

        synthesized = {c[1]: c[2] for c in services.calls_to("synthesize")}
        assert synthesized["Brought to you by Acme"] == "en-female-2"

    def test_custom_defaults_to_halfway(self, wizard):
        spot = wizard.add_sponsorship("Acme", position=SponsorshipPosition.CUSTOM)
        assert spot.custom_percent == 50

    def test_percent_dropped_for_fixed_positions(self, wizard):
        spot = wizard.add_sponsorship("Acme", position="end", custom_percent=30)
        assert spot.custom_percent is None

    def test_audio_sponsorship_has_no_voice(self, wizard):
        wizard.select_voice("en-male-1")
        spot = wizard.add_sponsorship("/ads/acme.mp3", kind=SponsorshipKind.AUDIO)
        assert spot.voice_id is None

    def test_empty_content_rejected(self, wizard):
        with pytest.raises(InputValidationError):
            wizard.add_sponsorship("   ")

    def test_remove_keeps_others(self, wizard):
        first = wizard.add_sponsorship("First")
        second = wizard.add_sponsorship("Second")
        assert wizard.remove_sponsorship(first.id)
        assert [s.id for s in wizard.config.sponsorships] == [second.id]
        assert not wizard.remove_sponsorship("missing")


class TestPersonalVoiceStep:
    def test_interviewer_previews_questions(self, wizard, services, voice_sample):
        wizard.set_script(SAMPLE_SCRIPT)
        voice = asyncio.run(wizard.set_personal_voice(voice_sample))
        assert voice.role is PersonalVoiceRole.INTERVIEWER
        assert voice.generated_questions == SAMPLE_QUESTIONS
        assert wizard.config.personal_voice == voice

    def test_preview_failure_is_not_fatal(self, settings, voice_sample):
        wizard = PodcastWizard(PipelineExecutor(FakeServices(fail_on={"questions"}), settings), settings)
        wizard.set_script(SAMPLE_SCRIPT)
        voice = asyncio.run(wizard.set_personal_voice(voice_sample))
        assert voice.generated_questions == []

    def test_other_roles_skip_preview(self, wizard, services, voice_sample):
        wizard.set_script(SAMPLE_SCRIPT)
        asyncio.run(wizard.set_personal_voice(voice_sample, role=PersonalVoiceRole.HOST))
        assert services.calls_to("questions") == []

    def test_rejects_non_audio_sample(self, wizard, tmp_path):
        sample = tmp_path / "notes.txt"
        sample.write_text("hello")
        with pytest.raises(InputValidationError, match="audio file"):
            asyncio.run(wizard.set_personal_voice(sample))

    def test_clear(self, wizard, voice_sample):
        asyncio.run(wizard.set_personal_voice(voice_sample, preview_questions=False))
        wizard.clear_personal_voice()
        assert wizard.config.personal_voice is None


class TestProcessing:
    def test_full_flow_and_restart(self, wizard, executor):
        _ready_for_processing(wizard)
        final = asyncio.run(wizard.run_processing())

        assert final.validations.all_passed
        assert wizard.step is WizardStep.COMPLETE
        assert wizard.artifact is executor.artifact
        with pytest.raises(WizardTransitionError):
            wizard.next()

        wizard.restart()
        assert wizard.step is WizardStep.UPLOAD
        assert wizard.config.script == ""
        assert wizard.artifact is None
        assert wizard.state.overall_progress == 0.0

    def test_failure_stays_on_processing(self, settings):
        wizard = PodcastWizard(PipelineExecutor(FakeServices(fail_on={"synthesize"}), settings), settings)
        _ready_for_processing(wizard)
        final = asyncio.run(wizard.run_processing())
        assert wizard.step is WizardStep.PROCESSING
        assert final.errors
        with pytest.raises(WizardTransitionError):
            wizard.next()
        # Going back to fix the configuration is allowed once the run is over
        assert wizard.previous() is WizardStep.VOICE

    def test_process_only_from_processing_step(self, wizard):
        async def scenario():
            async for _ in wizard.process():
                pass

        with pytest.raises(WizardTransitionError):
            asyncio.run(scenario())

    def test_config_locked_while_running(self, wizard, executor, voice_sample):
        _ready_for_processing(wizard)

        async def scenario():
            run = wizard.process()
            await run.__anext__()
            with pytest.raises(WizardTransitionError):
                wizard.apply(script="changed")
            with pytest.raises(WizardTransitionError):
                wizard.previous()
            with pytest.raises(WizardTransitionError):
                await wizard.set_personal_voice(voice_sample)
            await run.aclose()

        asyncio.run(scenario())
        assert wizard.config.script == SAMPLE_SCRIPT
        assert not executor.running

    def test_restart_only_when_complete(self, wizard):
        with pytest.raises(WizardTransitionError):
            wizard.restart()


class TestLoadDocument:
    def test_reads_document(self, wizard, services, tmp_path):
        doc = tmp_path / "lecture_notes.txt"
        doc.write_text(SAMPLE_SCRIPT)
        cfg = wizard.load_document(doc)
        assert cfg.document_name == "lecture_notes.txt"
        assert cfg.script == SAMPLE_SCRIPT
        assert services.calls_to("extract") == [("extract", doc)]

    def test_extraction_error_propagates(self, settings, tmp_path):
        wizard = PodcastWizard(PipelineExecutor(FakeServices(fail_on={"extract"}), settings), settings)
        doc = tmp_path / "scan.pdf"
        doc.write_bytes(b"%PDF")
        with pytest.raises(InputValidationError, match="very little text"):
            wizard.load_document(doc)
        assert wizard.config.script == ""
