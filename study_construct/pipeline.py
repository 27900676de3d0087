"""Pipeline Coordinator - sequences the agents and owns each run's session."""

import threading
import time
from typing import Callable, Sequence

from loguru import logger

from study_construct.agents.approval import ApprovalGate
from study_construct.agents.extractor import DocumentExtractor
from study_construct.agents.generator import plan_generation_tasks
from study_construct.agents.researcher import ResearchAgent, compute_focus, merge_weaknesses
from study_construct.config.settings import Settings, get_settings
from study_construct.exceptions import InvalidTransitionError
from study_construct.graph.workflow import ParallelGenerationStage
from study_construct.llm.client import ModelClient
from study_construct.memory.store import WeaknessMemoryStore
from study_construct.models.events import EventKind
from study_construct.models.pipeline import (
    ALLOWED_TRANSITIONS,
    PipelineRequest,
    PipelineSession,
    PipelineStage,
    TextDocument,
)
from study_construct.models.quiz import FactSet, QuestionKind, Quiz, QuizMetadata
from study_construct.progress import ProgressReporter
from study_construct.tools.search import create_search_tool

ClientFactory = Callable[[PipelineRequest, float], ModelClient]

TOPIC_MAX_LENGTH = 60
UNTITLED_TOPIC = "Untitled document"


def derive_topic(document_text: str) -> str:
    """
    Name a document by its first non-empty line.

    Args:
        document_text: Plain-text document

    Returns:
        The line, cut to TOPIC_MAX_LENGTH characters
    """
    for line in document_text.splitlines():
        line = line.strip()
        if line:
            return line[:TOPIC_MAX_LENGTH]
    return UNTITLED_TOPIC


class QuizPipeline:
    """
    Coordinator: research -> approval -> parallel generation -> assembly.

    Success path: INIT -> RESEARCHING -> AWAITING_APPROVAL -> GENERATING ->
    ASSEMBLED. A rejected fact set ends in ABORTED; an error while
    researching or generating ends in FAILED with the original exception
    kept on the session. Sessions live only for the duration of ``run``.
    """

    name = "Coordinator"

    def __init__(
        self,
        memory_store: WeaknessMemoryStore | None = None,
        approval_gate: ApprovalGate | None = None,
        settings: Settings | None = None,
        reporter: ProgressReporter | None = None,
        client_factory: ClientFactory | None = None,
        partition: Sequence[Sequence[QuestionKind]] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.memory_store = memory_store or WeaknessMemoryStore(self.settings.memory_dir)
        self.approval_gate = approval_gate or ApprovalGate()
        self.reporter = reporter or ProgressReporter()
        self.client_factory = client_factory or self._default_client
        self.partition = partition
        self._sessions: dict[str, PipelineSession] = {}
        self._sessions_lock = threading.Lock()

    def _default_client(self, request: PipelineRequest, temperature: float) -> ModelClient:
        return ModelClient(
            credential=request.credential or self.settings.anthropic_api_key,
            model_id=request.model_id,
            temperature=temperature,
            settings=self.settings,
        )

    @property
    def active_sessions(self) -> list[str]:
        """Ids of runs currently in progress."""
        with self._sessions_lock:
            return list(self._sessions)

    def _transition(self, session: PipelineSession, stage: PipelineStage) -> None:
        if stage not in ALLOWED_TRANSITIONS[session.stage]:
            raise InvalidTransitionError(
                f"Cannot move session {session.session_id} from "
                f"{session.stage.value} to {stage.value}"
            )
        logger.debug(f"{session.session_id}: {session.stage.value} -> {stage.value}")
        session.stage = stage
        session.history.append(stage)

    def _fail(self, session: PipelineSession, error: Exception) -> PipelineSession:
        session.error = error
        self._transition(session, PipelineStage.FAILED)
        self.reporter.emit(self.name, EventKind.ERROR, str(error))
        return session

    def _research(self, session: PipelineSession, request: PipelineRequest) -> tuple[FactSet, str]:
        client = self.client_factory(request, self.settings.research_temperature)

        if isinstance(request.document, TextDocument):
            document_text = request.document.text
        else:
            extraction_client = self.client_factory(
                request, self.settings.extraction_temperature
            )
            document_text = DocumentExtractor(extraction_client, self.reporter).extract(
                request.document
            )

        profile = self.memory_store.get_profile(session.user_id)
        weaknesses = merge_weaknesses(request.weaknesses, profile.weaknesses)
        if weaknesses:
            self.reporter.emit(
                self.name,
                EventKind.INFO,
                f"Focusing on user weaknesses: {', '.join(weaknesses)}",
            )

        researcher = ResearchAgent(
            client,
            tools=[create_search_tool(document_text)],
            reporter=self.reporter,
            max_tool_calls=self.settings.max_tool_calls,
            fact_count=self.settings.fact_count,
        )
        return researcher.run(document_text, compute_focus(weaknesses)), document_text

    def _record_topic(self, session: PipelineSession, topic: str) -> None:
        try:
            self.memory_store.record_topic_studied(session.user_id, topic)
        except OSError as e:
            logger.exception(f"Could not persist studied topic for {session.user_id!r}")
            self.reporter.emit(self.name, EventKind.ERROR, f"Memory update failed: {e}")
            return
        self.reporter.emit(
            self.name, EventKind.MEMORY, f"Recorded topic studied: {topic}"
        )

    def _generate(
        self,
        session: PipelineSession,
        request: PipelineRequest,
        facts: FactSet,
        topic: str,
    ) -> Quiz:
        client = self.client_factory(request, self.settings.generation_temperature)
        tasks = plan_generation_tasks(facts, self.settings.question_counts, self.partition)

        started = time.perf_counter()
        stage = ParallelGenerationStage(
            client, self.reporter, self.settings.generation_max_concurrency
        )
        result = stage.run(facts, tasks)

        return Quiz(
            title=f"Quiz: {topic}",
            questions=result.questions,
            facts=list(facts.facts),
            metadata=QuizMetadata(
                model_used=client.model_id,
                session_id=session.session_id,
                failed_tasks=result.failed_tasks,
                degraded=result.degraded,
                generation_time_seconds=time.perf_counter() - started,
            ),
        )

    def run(self, request: PipelineRequest) -> PipelineSession:
        """
        Run the pipeline once.

        Args:
            request: Credential, model, document and weaknesses for this run

        Returns:
            The finished session, in ASSEMBLED, ABORTED or FAILED
        """
        session = PipelineSession(user_id=request.user_id or self.settings.default_user_id)
        with self._sessions_lock:
            self._sessions[session.session_id] = session

        try:
            self.reporter.emit(
                self.name,
                EventKind.START,
                f"Starting quiz generation workflow ({session.session_id})...",
            )

            # 1. Research
            self._transition(session, PipelineStage.RESEARCHING)
            try:
                facts, document_text = self._research(session, request)
            except Exception as e:
                return self._fail(session, e)

            session.facts = facts
            self._transition(session, PipelineStage.AWAITING_APPROVAL)
            topic = request.topic or derive_topic(document_text)
            self._record_topic(session, topic)

            # 2. Human-in-the-loop review
            if not self.approval_gate.review(facts, self.reporter):
                self._transition(session, PipelineStage.ABORTED)
                self.reporter.emit(self.name, EventKind.DONE, "Aborted by reviewer.")
                return session

            # 3. Parallel generation
            self._transition(session, PipelineStage.GENERATING)
            try:
                session.quiz = self._generate(session, request, facts, topic)
            except Exception as e:
                return self._fail(session, e)

            self._transition(session, PipelineStage.ASSEMBLED)
            self.reporter.emit(
                self.name,
                EventKind.DONE,
                f"Quiz assembled with {session.quiz.total_questions} question(s).",
            )
            return session
        finally:
            with self._sessions_lock:
                self._sessions.pop(session.session_id, None)

    def generate_quiz(self, request: PipelineRequest) -> Quiz | None:
        """
        Run the pipeline and return just the quiz.

        Returns:
            The quiz, or None if the reviewer rejected the facts

        Raises:
            The original error of a FAILED run, unmodified
        """
        session = self.run(request)
        if session.stage == PipelineStage.FAILED and session.error is not None:
            raise session.error
        return session.quiz
