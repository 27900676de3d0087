"""Tests for the pipeline coordinator."""

import pytest

from study_construct.agents.approval import ApprovalGate
from study_construct.agents.generator import FALLBACK_QUESTION_TEXT
from study_construct.exceptions import (
    BackendError,
    CredentialError,
    ExtractionError,
    InvalidTransitionError,
    ResearchIncompleteError,
)
from study_construct.llm.client import ModelClient
from study_construct.models.events import EventKind
from study_construct.models.pipeline import (
    BlobDocument,
    DocumentFormat,
    PipelineRequest,
    PipelineSession,
    PipelineStage,
    TextDocument,
)
from study_construct.pipeline import UNTITLED_TOPIC, QuizPipeline, derive_topic

DOCUMENT = "The sky is blue.\nWater boils at 100C."

SUCCESS_PATH = [
    PipelineStage.INIT,
    PipelineStage.RESEARCHING,
    PipelineStage.AWAITING_APPROVAL,
    PipelineStage.GENERATING,
    PipelineStage.ASSEMBLED,
]


@pytest.fixture
def request_for():
    """Build a text request."""

    def build(text=DOCUMENT, **kwargs):
        return PipelineRequest(credential="test-key", document=TextDocument(text=text), **kwargs)

    return build


@pytest.fixture
def build_pipeline(settings, memory_store, reporter, make_client):
    """Build a pipeline whose every model call goes to one scripted client."""

    def build(routes, approve=True, **kwargs):
        client = make_client(routes)
        pipeline = QuizPipeline(
            memory_store=memory_store,
            approval_gate=ApprovalGate(lambda facts: approve),
            settings=settings,
            reporter=reporter,
            client_factory=lambda request, temperature: client,
            **kwargs,
        )
        return pipeline, client

    return build


class TestDeriveTopic:
    """Test topic naming."""

    def test_first_non_empty_line(self):
        """Test that leading blank lines are skipped."""
        assert derive_topic("\n\n  Bauhaus history  \nmore") == "Bauhaus history"

    def test_truncated(self):
        """Test the length cap."""
        assert len(derive_topic("x" * 200)) == 60

    def test_empty_document(self):
        """Test the placeholder for empty text."""
        assert derive_topic("   \n") == UNTITLED_TOPIC


class TestSuccessfulRun:
    """Test the full path to an assembled quiz."""

    def test_assembled_quiz(self, build_pipeline, request_for, routes):
        """Test five facts and a 3/1/1 quiz."""
        pipeline, _ = build_pipeline(routes)

        session = pipeline.run(request_for())

        assert session.stage == PipelineStage.ASSEMBLED
        assert session.history == SUCCESS_PATH
        assert len(session.facts) == 5
        kinds = [q.kind for q in session.quiz.questions]
        assert kinds == ["multiple-choice"] * 3 + ["true-false", "fill-blank"]
        assert session.error is None

    def test_quiz_metadata(self, build_pipeline, request_for, routes):
        """Test the quiz title and metadata."""
        pipeline, _ = build_pipeline(routes)

        session = pipeline.run(request_for(topic="Physics"))

        quiz = session.quiz
        assert quiz.title == "Quiz: Physics"
        assert quiz.facts == list(session.facts.facts)
        assert quiz.metadata.session_id == session.session_id
        assert quiz.metadata.model_used == "fake-model"
        assert quiz.metadata.degraded is False
        assert quiz.metadata.generation_time_seconds >= 0

    def test_topic_recorded_after_research(self, build_pipeline, request_for, routes, memory_store):
        """Test that the studied topic is persisted for the user."""
        pipeline, _ = build_pipeline(routes)

        pipeline.run(request_for(user_id="alice"))

        assert memory_store.get_profile("alice").topics_studied == ["The sky is blue."]

    def test_default_user(self, build_pipeline, request_for, routes, settings):
        """Test the configured fallback user id."""
        pipeline, _ = build_pipeline(routes)

        session = pipeline.run(request_for())

        assert session.user_id == settings.default_user_id

    def test_blank_user_means_default_user(
        self, build_pipeline, request_for, routes, settings, memory_store
    ):
        """Test that an empty user id falls back to the configured user."""
        pipeline, _ = build_pipeline(routes)

        session = pipeline.run(request_for(user_id="  "))

        assert session.stage == PipelineStage.ASSEMBLED
        assert session.user_id == settings.default_user_id
        assert memory_store.get_profile(settings.default_user_id).topics_studied == [
            "The sky is blue."
        ]

    def test_event_sequence(self, build_pipeline, request_for, routes, reporter):
        """Test that the run is bracketed by START and DONE."""
        pipeline, _ = build_pipeline(routes)

        pipeline.run(request_for())

        assert reporter.events[0].kind == EventKind.START
        assert reporter.events[-1].kind == EventKind.DONE
        assert any(e.kind == EventKind.MEMORY for e in reporter.events)

    def test_sessions_are_released(self, build_pipeline, request_for, routes):
        """Test that no session outlives its run."""
        pipeline, _ = build_pipeline(routes)

        pipeline.run(request_for())

        assert pipeline.active_sessions == []

    def test_generate_quiz_shorthand(self, build_pipeline, request_for, routes):
        """Test the quiz-only entry point."""
        pipeline, _ = build_pipeline(routes)

        quiz = pipeline.generate_quiz(request_for())

        assert quiz.total_questions == 5


class TestWeaknessFocus:
    """Test how weaknesses steer research."""

    def test_session_and_stored_weaknesses_are_merged(
        self, build_pipeline, request_for, routes, memory_store, payloads
    ):
        """Test that the research prompt names both sources."""
        memory_store.update_weaknesses("bob", ["boiling"])
        pipeline, client = build_pipeline(routes)

        pipeline.run(request_for(user_id="bob", weaknesses=["scattering"]))

        prompt = client.prompts_containing(payloads.markers["research"])[0]
        assert "concepts related to: scattering, boiling" in prompt

    def test_no_weaknesses_means_general_focus(self, build_pipeline, request_for, routes, payloads):
        """Test the general focus."""
        pipeline, client = build_pipeline(routes)

        pipeline.run(request_for())

        prompt = client.prompts_containing(payloads.markers["research"])[0]
        assert "about: general concepts" in prompt

    def test_pipeline_does_not_persist_session_weaknesses(
        self, build_pipeline, request_for, routes, memory_store
    ):
        """Test that only the quiz-taking side adds weaknesses."""
        pipeline, _ = build_pipeline(routes)

        pipeline.run(request_for(user_id="carol", weaknesses=["scattering"]))

        assert memory_store.get_profile("carol").weaknesses == []


class TestAbortedRun:
    """Test a rejected fact set."""

    def test_rejection_aborts_before_generation(
        self, build_pipeline, request_for, routes, memory_store, payloads
    ):
        """Test the ABORTED stage and that no examiner ran."""
        pipeline, client = build_pipeline(routes, approve=False)

        session = pipeline.run(request_for(user_id="dave"))

        assert session.stage == PipelineStage.ABORTED
        assert session.quiz is None
        assert session.error is None
        assert client.prompts_containing("Examiner") == []
        profile = memory_store.get_profile("dave")
        assert profile.topics_studied == ["The sky is blue."]
        assert profile.quiz_history == []
        assert profile.weaknesses == []

    def test_generate_quiz_returns_none(self, build_pipeline, request_for, routes):
        """Test the shorthand for an aborted run."""
        pipeline, _ = build_pipeline(routes, approve=False)

        assert pipeline.generate_quiz(request_for()) is None


class TestFailedRun:
    """Test errors surfacing as FAILED sessions."""

    def test_research_backend_error(self, build_pipeline, request_for, payloads, memory_store):
        """Test that the backend's message is kept unmodified."""
        error = BackendError("429: rate limit exceeded")
        pipeline, _ = build_pipeline([(payloads.markers["research"], error)])

        session = pipeline.run(request_for(user_id="erin"))

        assert session.stage == PipelineStage.FAILED
        assert session.history[-2:] == [PipelineStage.RESEARCHING, PipelineStage.FAILED]
        assert session.error is error
        assert str(session.error) == "429: rate limit exceeded"
        assert memory_store.get_profile("erin").topics_studied == []

    def test_research_without_facts(self, build_pipeline, request_for, payloads):
        """Test an empty research answer."""
        pipeline, _ = build_pipeline([(payloads.markers["research"], "\n\n")])

        session = pipeline.run(request_for())

        assert session.stage == PipelineStage.FAILED
        assert isinstance(session.error, ResearchIncompleteError)

    def test_generate_quiz_raises_original_error(self, build_pipeline, request_for, payloads):
        """Test that the shorthand re-raises the stored exception."""
        pipeline, _ = build_pipeline(
            [(payloads.markers["research"], BackendError("upstream down"))]
        )

        with pytest.raises(BackendError, match="upstream down"):
            pipeline.generate_quiz(request_for())

    def test_missing_credential(self, settings, memory_store, reporter):
        """Test the default client refusing to call without a key."""
        settings = settings.model_copy(update={"anthropic_api_key": None})
        pipeline = QuizPipeline(memory_store=memory_store, settings=settings, reporter=reporter)

        session = pipeline.run(PipelineRequest(document=TextDocument(text=DOCUMENT)))

        assert session.stage == PipelineStage.FAILED
        assert isinstance(session.error, CredentialError)

    def test_generation_credential_error(self, build_pipeline, request_for, payloads):
        """Test a fatal error while generating."""
        pipeline, _ = build_pipeline(
            [
                (payloads.markers["research"], payloads.numbered(["fact"])),
                ("Examiner", CredentialError("expired")),
            ]
        )

        session = pipeline.run(request_for())

        assert session.stage == PipelineStage.FAILED
        assert session.history[-2:] == [PipelineStage.GENERATING, PipelineStage.FAILED]
        assert isinstance(session.error, CredentialError)

    def test_failure_event(self, build_pipeline, request_for, payloads, reporter):
        """Test that the failure is reported as an ERROR event."""
        pipeline, _ = build_pipeline([(payloads.markers["research"], BackendError("nope"))])

        pipeline.run(request_for())

        assert reporter.events[-1].kind == EventKind.ERROR
        assert reporter.events[-1].message == "nope"


class TestDegradedRun:
    """Test the all-tasks-failed fallback through the whole pipeline."""

    def test_fallback_quiz_is_assembled(self, build_pipeline, request_for, payloads):
        """Test that total generation failure is still a displayable quiz."""
        pipeline, _ = build_pipeline(
            [
                (payloads.markers["research"], payloads.numbered(["fact"])),
                ("Examiner", "not json at all"),
            ]
        )

        session = pipeline.run(request_for())

        assert session.stage == PipelineStage.ASSEMBLED
        assert session.quiz.metadata.degraded is True
        assert [q.question for q in session.quiz.questions] == [FALLBACK_QUESTION_TEXT]


class TestBlobDocuments:
    """Test multimodal input."""

    def test_blob_is_extracted_then_researched(self, build_pipeline, routes, payloads):
        """Test that research runs over the extracted text."""
        pipeline, client = build_pipeline(
            [("Analyze this image", "A chart of boiling points.")] + routes
        )
        request = PipelineRequest(
            credential="test-key",
            document=BlobDocument(
                base64="aGk=", mime_type="image/png", format=DocumentFormat.IMAGE
            ),
        )

        session = pipeline.run(request)

        assert session.stage == PipelineStage.ASSEMBLED
        assert client.calls[0][1] is not None
        research_prompt = client.prompts_containing(payloads.markers["research"])[0]
        assert "A chart of boiling points." in research_prompt

    def test_extraction_failure(self, build_pipeline):
        """Test that a failed extraction fails the run."""
        pipeline, _ = build_pipeline([("Analyze this image", BackendError("bad image"))])
        request = PipelineRequest(
            credential="test-key",
            document=BlobDocument(
                base64="aGk=", mime_type="image/png", format=DocumentFormat.IMAGE
            ),
        )

        session = pipeline.run(request)

        assert session.stage == PipelineStage.FAILED
        assert isinstance(session.error, ExtractionError)
        assert str(session.error) == "bad image"


class TestTransitions:
    """Test the stage machine guard."""

    def test_illegal_transition_rejected(self, build_pipeline):
        """Test that stages cannot be skipped."""
        pipeline, _ = build_pipeline([])
        session = PipelineSession(user_id="u1")

        with pytest.raises(InvalidTransitionError):
            pipeline._transition(session, PipelineStage.GENERATING)

    def test_terminal_stage_is_final(self, build_pipeline):
        """Test that nothing leaves ASSEMBLED."""
        pipeline, _ = build_pipeline([])
        session = PipelineSession(user_id="u1")
        for stage in SUCCESS_PATH[1:]:
            pipeline._transition(session, stage)

        with pytest.raises(InvalidTransitionError):
            pipeline._transition(session, PipelineStage.FAILED)


class TestDefaultClientFactory:
    """Test the clients the pipeline builds for itself."""

    def test_uses_request_model_and_stage_temperature(self, settings, memory_store):
        """Test model id and temperature pass-through."""
        pipeline = QuizPipeline(memory_store=memory_store, settings=settings)
        request = PipelineRequest(
            credential="k", model_id="claude-x", document=TextDocument(text="t")
        )

        client = pipeline.client_factory(request, settings.research_temperature)

        assert isinstance(client, ModelClient)
        assert client.model_id == "claude-x"
        assert client.credential == "k"
        assert client.temperature == settings.research_temperature

    def test_falls_back_to_configured_key(self, settings, memory_store):
        """Test the settings credential when the request has none."""
        pipeline = QuizPipeline(memory_store=memory_store, settings=settings)

        client = pipeline.client_factory(
            PipelineRequest(document=TextDocument(text="t")), 0.5
        )

        assert client.credential == "test-key"
        assert client.model_id == "fake-model"
