"""Researcher Agent - extracts a fixed-size fact set, searching the document as needed."""

import re
from typing import Sequence

from langchain_core.tools import BaseTool

from study_construct.exceptions import ResearchIncompleteError
from study_construct.llm.client import ModelClient
from study_construct.models.events import EventKind
from study_construct.models.quiz import FactSet
from study_construct.progress import ProgressReporter

ACTION_RE = re.compile(r"^\s*ACTION:\s*([\w-]+)\s*:\s*(.*?)\s*$", re.MULTILINE)
LIST_MARKER_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)]|\(\d+\))\s*")
ANSWER_HEADER_RE = re.compile(r"^\s*(?:FACTS|FINAL ANSWER)\s*:\s*", re.IGNORECASE)

GENERAL_FOCUS = "general concepts"


def merge_weaknesses(*sources: Sequence[str]) -> list[str]:
    """Union several weakness lists, keeping first-seen order."""
    merged: list[str] = []
    for source in sources:
        for weakness in source:
            weakness = weakness.strip()
            if weakness and weakness not in merged:
                merged.append(weakness)
    return merged


def compute_focus(weaknesses: Sequence[str]) -> str:
    """
    Describe what the researcher should concentrate on.

    Args:
        weaknesses: Union of session and historical weaknesses

    Returns:
        "concepts related to: a, b" or "general concepts"
    """
    if weaknesses:
        return "concepts related to: " + ", ".join(weaknesses)
    return GENERAL_FOCUS


def normalize_facts(raw: str, limit: int) -> list[str]:
    """
    Turn the researcher's final answer into a list of fact strings.

    Blank lines, tool-call lines, code fences and answer headers are dropped,
    list markers ("1.", "-", "(2)") are stripped, and at most ``limit`` facts
    are kept.
    """
    facts: list[str] = []
    for line in raw.splitlines():
        if ACTION_RE.match(line) or line.strip().startswith("```"):
            continue
        line = ANSWER_HEADER_RE.sub("", line)
        fact = LIST_MARKER_RE.sub("", line).strip()
        if fact:
            facts.append(fact)
    return facts[:limit]


class ResearchAgent:
    """
    A single bounded reasoning loop over one document.

    Each step asks the model either to call a tool (``ACTION: <tool>: <input>``)
    or to give its final numbered list. Tool calls are capped at
    ``max_tool_calls``; after that the prompt demands the final answer.
    Steps run strictly one after another.
    """

    name = "Researcher"
    role = "diligent analyst who finds key facts in text"

    def __init__(
        self,
        client: ModelClient,
        tools: Sequence[BaseTool] = (),
        reporter: ProgressReporter | None = None,
        max_tool_calls: int = 3,
        fact_count: int = 5,
    ) -> None:
        self.client = client
        self.tools = list(tools)
        self.reporter = reporter or ProgressReporter()
        self.max_tool_calls = max_tool_calls
        self.fact_count = fact_count

    def _tool_by_name(self, name: str) -> BaseTool | None:
        return next((t for t in self.tools if t.name == name), None)

    def build_prompt(
        self,
        document_text: str,
        focus: str,
        transcript: list[tuple[str, str, str]],
        tool_calls_left: int,
    ) -> str:
        """
        Build the prompt for one step of the loop.

        Args:
            document_text: Source document
            focus: What to concentrate on
            transcript: (tool, input, observation) for every earlier call
            tool_calls_left: Remaining tool budget

        Returns:
            Prompt text
        """
        sections = [
            f"You are {self.name}, a {self.role}.",
            f"Your goal is to extract {self.fact_count} key facts from the document "
            f"below about: {focus}.",
        ]

        if self.tools and tool_calls_left > 0:
            tool_lines = "\n".join(f"- {t.name}: {t.description}" for t in self.tools)
            sections.append(
                f"""You may use these tools ({tool_calls_left} call(s) left):
{tool_lines}

To call a tool, reply with exactly one line and nothing else:
ACTION: <tool name>: <input>"""
            )
        elif self.tools:
            sections.append(
                "You have used all of your tool calls. Give your final answer now."
            )

        sections.append(f"DOCUMENT:\n{document_text}")

        if transcript:
            calls = "\n\n".join(
                f"ACTION: {tool}: {tool_input}\nOBSERVATION:\n{observation}"
                for tool, tool_input, observation in transcript
            )
            sections.append(f"PREVIOUS TOOL RESULTS:\n{calls}")

        example = "\n".join(f"{i}. Fact {i}" for i in range(1, self.fact_count + 1))
        sections.append(
            f"""When you are ready, output ONLY a numbered list of {self.fact_count} facts, nothing else.
Example:
{example}"""
        )
        return "\n\n".join(sections)

    def run(self, document_text: str, focus: str) -> FactSet:
        """
        Run the loop until the model gives its final answer.

        Returns:
            FactSet with between 1 and ``fact_count`` facts

        Raises:
            ResearchIncompleteError: the final answer holds no usable fact
        """
        transcript: list[tuple[str, str, str]] = []
        tool_names = ", ".join(t.name for t in self.tools) or "none"
        self.reporter.emit(
            self.name,
            EventKind.INFO,
            f"I need to extract {self.fact_count} key facts about {focus}. "
            f"I have tools: {tool_names}.",
        )

        while True:
            tool_calls_left = self.max_tool_calls - len(transcript)
            prompt = self.build_prompt(document_text, focus, transcript, tool_calls_left)
            response = self.client.generate(prompt)

            action = ACTION_RE.search(response)
            if action is None or tool_calls_left <= 0 or not self.tools:
                break

            thought = response[: action.start()].strip()
            if thought:
                self.reporter.emit(self.name, EventKind.INFO, thought)

            tool_name, tool_input = action.group(1), action.group(2)
            self.reporter.emit(
                self.name, EventKind.ACTION, f"Calling {tool_name} with {tool_input!r}"
            )
            tool = self._tool_by_name(tool_name)
            if tool is None:
                observation = (
                    f"Tool {tool_name!r} does not exist. Available tools: {tool_names}."
                )
            else:
                observation = str(tool.invoke(tool_input))
            self.reporter.emit(self.name, EventKind.OBSERVATION, observation)
            transcript.append((tool_name, tool_input, observation))

        facts = normalize_facts(response, self.fact_count)
        if not facts:
            raise ResearchIncompleteError(
                "Research produced no facts: the model's final answer was empty"
            )

        self.reporter.emit(
            self.name, EventKind.RESPONSE, f"Extracted {len(facts)} fact(s)."
        )
        return FactSet(facts=facts)
