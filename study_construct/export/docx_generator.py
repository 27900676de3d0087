"""DOCX document generator for quiz export."""

from datetime import datetime
from pathlib import Path

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Inches, Pt, RGBColor

from study_construct.models.quiz import (
    FillBlankQuestion,
    MatchingQuestion,
    MultipleChoiceQuestion,
    OrderingQuestion,
    Question,
    QuestionKind,
    Quiz,
    TrueFalseQuestion,
)

KIND_TITLES = {
    QuestionKind.MULTIPLE_CHOICE: "Multiple Choice",
    QuestionKind.TRUE_FALSE: "True / False",
    QuestionKind.FILL_BLANK: "Fill in the Blank",
    QuestionKind.MATCHING: "Matching",
    QuestionKind.ORDERING: "Ordering",
}

CORRECT_COLOR = RGBColor(0, 128, 0)
HEADING_COLOR = RGBColor(0, 51, 102)


def ensure_output_directory(output_dir: str = "output") -> Path:
    """
    Ensure the output directory exists.

    Args:
        output_dir: Directory path to create

    Returns:
        Path object for the output directory
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    return output_path


def generate_timestamped_filename(base_name: str, extension: str = "docx") -> str:
    """
    Generate a filename with timestamp.

    Args:
        base_name: Base name for the file
        extension: File extension (without dot)

    Returns:
        Filename with timestamp
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    # Drop any directory part
    base_name = Path(base_name).name
    return f"{base_name}_{timestamp}.{extension}"


def letter_for(index: int) -> str:
    """0 -> "A", 1 -> "B", ..."""
    return chr(ord("A") + index)


def format_answer(question: Question) -> str:
    """
    Render the correct answer of any question kind as one line of text.

    Args:
        question: Question of any kind

    Returns:
        Human-readable answer
    """
    if isinstance(question, MultipleChoiceQuestion):
        return f"{letter_for(question.correct_index)} - {question.options[question.correct_index]}"
    if isinstance(question, TrueFalseQuestion):
        return "True" if question.correct_answer else "False"
    if isinstance(question, FillBlankQuestion):
        others = [a for a in question.acceptable_answers if a != question.correct_answer]
        if others:
            return f"{question.correct_answer} (also: {', '.join(others)})"
        return question.correct_answer
    if isinstance(question, MatchingQuestion):
        return "; ".join(f"{pair.left} -> {pair.right}" for pair in question.pairs)
    if isinstance(question, OrderingQuestion):
        return " -> ".join(question.items[i] for i in question.correct_order)
    raise TypeError(f"Unsupported question type: {type(question).__name__}")


def export_to_docx(
    quiz: Quiz,
    output_path: str,
    include_answers: bool = False,
    use_output_dir: bool = True,
    output_dir: str = "output",
) -> str:
    """
    Export quiz to a formatted DOCX file.

    Args:
        quiz: Quiz object to export
        output_path: Path where the DOCX file should be saved
        include_answers: If True, marks correct answers and adds an answer key
        use_output_dir: If True, saves to output directory with timestamp
        output_dir: Directory to save files in (default: "output")

    Returns:
        Path to the created DOCX file
    """
    if use_output_dir:
        output_dir_path = ensure_output_directory(output_dir)
        output_path = str(
            output_dir_path / generate_timestamped_filename(Path(output_path).stem)
        )

    doc = Document()
    setup_document_styles(doc)

    title = doc.add_heading(quiz.title, level=0)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER

    info_para = doc.add_paragraph()
    info_para.add_run(f"Total Questions: {quiz.total_questions}").bold = True
    info_para.alignment = WD_ALIGN_PARAGRAPH.CENTER

    date_para = doc.add_paragraph(
        f"Generated: {quiz.metadata.created_at.strftime('%Y-%m-%d %H:%M')}"
    )
    date_para.alignment = WD_ALIGN_PARAGRAPH.CENTER
    date_para.runs[0].font.size = Pt(9)
    date_para.runs[0].font.color.rgb = RGBColor(128, 128, 128)

    if quiz.metadata.degraded:
        warning = doc.add_paragraph()
        run = warning.add_run("Question generation failed; this quiz is a placeholder.")
        run.bold = True
        run.font.color.rgb = RGBColor(255, 0, 0)

    if quiz.facts:
        doc.add_heading("Key Facts", level=1).runs[0].font.color.rgb = HEADING_COLOR
        for fact in quiz.facts:
            doc.add_paragraph(fact, style="List Number")

    doc.add_page_break()

    for i, question in enumerate(quiz.questions, 1):
        add_question_to_document(doc, i, question, include_answers)

    if include_answers:
        add_answer_key(doc, quiz)

    doc.save(output_path)

    return output_path


def setup_document_styles(doc: Document) -> None:
    """
    Set up document-wide styles.

    Args:
        doc: Document to configure
    """
    font = doc.styles["Normal"].font
    font.name = "Calibri"
    font.size = Pt(11)

    for section in doc.sections:
        section.top_margin = Inches(1)
        section.bottom_margin = Inches(1)
        section.left_margin = Inches(1)
        section.right_margin = Inches(1)


def _indented(doc: Document, text: str):
    para = doc.add_paragraph(text)
    para.paragraph_format.left_indent = Inches(0.5)
    return para


def _mark_correct(para) -> None:
    para.runs[0].bold = True
    para.runs[0].font.color.rgb = CORRECT_COLOR
    para.add_run(" ✓").font.color.rgb = CORRECT_COLOR


def add_question_to_document(
    doc: Document, number: int, question: Question, include_answers: bool = False
) -> None:
    """
    Add one question, laid out according to its kind.

    Args:
        doc: Document to add to
        number: 1-based question number
        question: Question of any kind
        include_answers: If True, highlights answers and shows explanations
    """
    q_para = doc.add_paragraph()
    q_run = q_para.add_run(f"Q{number}. ")
    q_run.bold = True
    q_run.font.size = Pt(12)
    q_para.add_run(question.question)

    kind_para = doc.add_paragraph()
    kind_run = kind_para.add_run(f"  {KIND_TITLES[QuestionKind(question.kind)]}")
    kind_run.font.size = Pt(9)
    kind_run.italic = True

    if isinstance(question, MultipleChoiceQuestion):
        for index, option in enumerate(question.options):
            opt_para = _indented(doc, f"{letter_for(index)}. {option}")
            if include_answers and index == question.correct_index:
                _mark_correct(opt_para)

    elif isinstance(question, TrueFalseQuestion):
        for value in (True, False):
            opt_para = _indented(doc, "True" if value else "False")
            if include_answers and value == question.correct_answer:
                _mark_correct(opt_para)

    elif isinstance(question, FillBlankQuestion):
        answer_para = _indented(doc, "Answer: ______________________")
        if include_answers:
            answer_para.add_run(f"  ({format_answer(question)})").font.color.rgb = CORRECT_COLOR

    elif isinstance(question, MatchingQuestion):
        # Right-hand column is shown in reverse so the pairs are not given away
        rights = [pair.right for pair in question.pairs][::-1]
        table = doc.add_table(rows=len(question.pairs), cols=2)
        for row, (pair, right) in zip(table.rows, zip(question.pairs, rights)):
            row.cells[0].text = pair.left
            row.cells[1].text = right
        if include_answers:
            _indented(doc, f"Matches: {format_answer(question)}")

    elif isinstance(question, OrderingQuestion):
        for index, item in enumerate(question.items):
            _indented(doc, f"{letter_for(index)}. {item}")
        if include_answers:
            _indented(doc, f"Correct order: {format_answer(question)}")

    if include_answers and question.explanation:
        exp_para = doc.add_paragraph()
        exp_para.paragraph_format.left_indent = Inches(0.5)
        exp_run = exp_para.add_run(f"Explanation: {question.explanation}")
        exp_run.italic = True
        exp_run.font.size = Pt(10)
        exp_run.font.color.rgb = RGBColor(64, 64, 64)

    doc.add_paragraph()


def add_answer_key(doc: Document, quiz: Quiz) -> None:
    """
    Add an answer key section at the end of the document.

    Args:
        doc: Document to add to
        quiz: Quiz object
    """
    doc.add_page_break()

    header = doc.add_heading("Answer Key", level=1)
    header.alignment = WD_ALIGN_PARAGRAPH.CENTER
    header.runs[0].font.color.rgb = HEADING_COLOR

    table = doc.add_table(rows=1, cols=4)
    table.style = "Light Grid Accent 1"

    header_cells = table.rows[0].cells
    for cell, text in zip(header_cells, ("Q#", "Type", "Answer", "Explanation")):
        cell.text = text
        for paragraph in cell.paragraphs:
            for run in paragraph.runs:
                run.bold = True

    for i, question in enumerate(quiz.questions, 1):
        row_cells = table.add_row().cells
        row_cells[0].text = str(i)
        row_cells[1].text = KIND_TITLES[QuestionKind(question.kind)]
        row_cells[2].text = format_answer(question)
        row_cells[3].text = question.explanation or "N/A"


def generate_answer_key(quiz: Quiz, output_path: str) -> str:
    """
    Generate a separate answer key document.

    Args:
        quiz: Quiz object
        output_path: Path where the answer key should be saved

    Returns:
        Path to the created answer key file
    """
    doc = Document()
    setup_document_styles(doc)

    title = doc.add_heading(f"{quiz.title} - Answer Key", level=0)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER

    add_answer_key(doc, quiz)

    doc.save(output_path)

    return output_path


def export_quiz_with_separate_answers(
    quiz: Quiz, base_path: str, output_dir: str = "output"
) -> tuple[str, str]:
    """
    Export quiz with questions and answers in separate files.

    Args:
        quiz: Quiz object
        base_path: Base path for output files (without extension)
        output_dir: Directory to save files in (default: "output")

    Returns:
        Tuple of (questions_path, answers_path)
    """
    output_path = ensure_output_directory(output_dir)
    base_name = Path(base_path).name

    questions_path = str(output_path / generate_timestamped_filename(f"{base_name}_questions"))
    answers_path = str(output_path / generate_timestamped_filename(f"{base_name}_answers"))

    export_to_docx(quiz, questions_path, include_answers=False, use_output_dir=False)
    generate_answer_key(quiz, answers_path)

    return questions_path, answers_path
