# Exports of the study schedule and the exam timetable (PDF and iCalendar)
from datetime import datetime

from fpdf import FPDF
import icalendar

from .consts import subject_name
from .errors import ValidationError
from .schedule import active_sessions
from .utils import parse_local, format_time_12h


class SchedulePDF(FPDF):
    """A4 portrait document with a title line and page numbers."""

    def __init__(self, title, font_path=None):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.title_text = title
        self.unicode_font = bool(font_path)
        if font_path:
            # The same face serves the regular and bold styles
            self.add_font("Body", "", font_path)
            self.add_font("Body", "B", font_path)
            self.body_font = "Body"
        else:
            self.body_font = "helvetica"
        self.set_margins(15, 15, 15)
        self.set_auto_page_break(auto=True, margin=15)

    def clean(self, text):
        # Core fonts only cover latin-1
        text = str(text)
        if self.unicode_font:
            return text
        return text.encode("latin-1", "replace").decode("latin-1")

    def header(self):
        self.set_font(self.body_font, "B", 16)
        self.cell(0, 10, self.clean(self.title_text), align="C")
        self.ln(12)

    def footer(self):
        self.set_y(-15)
        self.set_font(self.body_font, "", 8)
        self.cell(0, 10, f"Page {self.page_no()}/{{nb}}", align="C")

    def write_table(self, headers, rows, col_widths):
        self.set_font(self.body_font, "", 10)
        with self.table(col_widths=col_widths, text_align="LEFT") as table:
            header = table.row()
            for text in headers:
                header.cell(self.clean(text))
            for values in rows:
                row = table.row()
                for text in values:
                    row.cell(self.clean(text))


def schedule_pdf(sessions, font_path=None):
    """
    Render the active sessions as a PDF table.

    Returns:
        bytes: The PDF document.

    Raises:
        ValidationError: When there are no active sessions.
    """
    active = active_sessions(sessions)
    if not active:
        raise ValidationError("There are no active sessions to export")

    pdf = SchedulePDF("Study Schedule", font_path)
    pdf.alias_nb_pages()
    pdf.add_page()

    rows = []
    for doc in active:
        start = parse_local(doc["startDate"])
        end = parse_local(doc["endDate"])
        lessons = "\n".join(
            f"{'[x]' if lesson['completed'] else '-'} {lesson['name']}"
            for lesson in doc["lessons"]
        )
        rows.append((
            subject_name(doc["subject"]),
            start.strftime("%A"),
            start.strftime("%d/%m/%Y"),
            format_time_12h(start),
            format_time_12h(end),
            lessons,
        ))

    pdf.write_table(
        ("Subject", "Day", "Date", "Start", "End", "Lessons"),
        rows,
        (30, 22, 25, 20, 20, 63),
    )
    return bytes(pdf.output())


def exams_pdf(exams, font_path=None):
    """
    Render exams (dicts from Exam.to_dict) as a PDF table ordered by date.

    Raises:
        ValidationError: When there are no exams.
    """
    if not exams:
        raise ValidationError("There are no exams to export")

    pdf = SchedulePDF("Exam Timetable", font_path)
    pdf.alias_nb_pages()
    pdf.add_page()

    rows = []
    for exam in sorted(exams, key=lambda e: e["date"]):
        rows.append((
            subject_name(exam["subject"]),
            exam["day"],
            datetime.fromisoformat(exam["date"]).strftime("%d/%m/%Y"),
            "\n".join(f"- {topic}" for topic in exam["topics"]),
        ))

    pdf.write_table(("Subject", "Day", "Date", "Topics"), rows, (40, 25, 30, 85))
    return bytes(pdf.output())


def schedule_ics(sessions):
    """
    Export active sessions as an iCalendar file.

    Returns:
        bytes: The .ics content.
    """
    cal = icalendar.Calendar()
    cal.add("prodid", "-//StudyTrack//studytrack.app//")
    cal.add("version", "2.0")

    for doc in active_sessions(sessions):
        vevent = icalendar.Event()
        vevent.add("summary", subject_name(doc["subject"]))
        vevent.add("dtstart", parse_local(doc["startDate"]))
        vevent.add("dtend", parse_local(doc["endDate"]))
        vevent.add("uid", f"{doc['id']}@studytrack.app")
        vevent.add(
            "description",
            "\n".join(lesson["name"] for lesson in doc["lessons"]),
        )
        cal.add_component(vevent)

    return cal.to_ical()
