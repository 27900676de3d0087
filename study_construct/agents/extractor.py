"""Extractor Agent - converts image, audio, video and binary documents to text."""

from study_construct.exceptions import (
    BackendError,
    EmptyResponseError,
    ExtractionError,
)
from study_construct.llm.client import ModelClient
from study_construct.models.events import EventKind
from study_construct.models.pipeline import BlobDocument, DocumentFormat
from study_construct.progress import ProgressReporter

EXTRACTION_PROMPTS: dict[DocumentFormat, str] = {
    DocumentFormat.IMAGE: """Analyze this image thoroughly and extract all information:
- Any text visible in the image (OCR)
- Diagrams, charts, and visual data
- Key concepts and relationships shown
- Important details and context

Format the output as clear, structured text that can be used to create educational quiz questions.
Be comprehensive and detailed.""",
    DocumentFormat.AUDIO: """Transcribe this audio file completely and accurately:
- All spoken words and dialogue
- Key topics and concepts discussed
- Important points and takeaways
- Context and background information

Format the output as clear, structured text suitable for creating quiz questions.""",
    DocumentFormat.VIDEO: """Analyze this video comprehensively:
- Transcribe all spoken words and dialogue
- Describe visual elements, scenes, and demonstrations
- Extract any text visible in the video
- Identify key concepts and topics covered
- Note important details and context

Format the output as clear, structured text that can be used to create educational quiz questions.
Be thorough and detailed.""",
}

GENERIC_EXTRACTION_PROMPT = "Extract and describe all content from this file in detail."


def get_prompt_for_format(document_format: DocumentFormat) -> str:
    """Format-specific extraction prompt, with a generic fallback."""
    return EXTRACTION_PROMPTS.get(document_format, GENERIC_EXTRACTION_PROMPT)


class DocumentExtractor:
    """Turn a BlobDocument into plain text through the model client."""

    name = "Extractor"

    def __init__(self, client: ModelClient, reporter: ProgressReporter | None = None) -> None:
        self.client = client
        self.reporter = reporter or ProgressReporter()

    def extract(self, document: BlobDocument) -> str:
        """
        Extract text from a binary document.

        Raises:
            CredentialError: no credential configured (not wrapped)
            ExtractionError: the backend failed or returned nothing
        """
        self.reporter.emit(
            self.name,
            EventKind.ACTION,
            f"Extracting content from {document.format.value} ({document.mime_type})...",
        )
        try:
            text = self.client.generate(
                get_prompt_for_format(document.format), document.as_inline_blob()
            )
        except (BackendError, EmptyResponseError) as e:
            raise ExtractionError(str(e), document.format.value) from e

        self.reporter.emit(
            self.name,
            EventKind.OBSERVATION,
            f"Extracted {len(text)} characters from {document.format.value}.",
        )
        return text
