"""
Section renderer and report generator.

Both outputs are produced from the same section table and the same field
formatter: ``render_interactive`` returns structured SectionView objects,
``render_printable`` renders those same views into a standalone HTML
document. Empty sections are kept and flagged, never dropped.
"""
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from eyeexam.config import settings
from eyeexam.models.api import FieldView, ReportView, SectionView, TableRow, TableView, VisitContext
from eyeexam.models.schema import EYES, Enumerated, ExaminationSnapshot, FieldSpec, FieldType, Other, SafeMarkup, Section
from eyeexam.services.vocabulary import ACUITY_MEASURES, FIELDS, format_field_name, sections_table
from eyeexam.utils import is_empty

logger = logging.getLogger(__name__)

NOT_RECORDED = "Not recorded"
NONE_LISTED = "None"

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

ACUITY_RX = re.compile(r"^(?P<prefix>.+)_(?P<eye>od|os)_(?P<measure>ucva|scva|bcva)$")


def format_value(spec: FieldSpec, value: Any) -> str:
    """Display string for one snapshot value; identical for both outputs."""
    if spec.type is FieldType.LIST:
        items = [str(v) for v in (value or []) if not is_empty(v)]
        return ", ".join(items) if items else NONE_LISTED
    if is_empty(value):
        return NOT_RECORDED
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, SafeMarkup):
        return value
    if isinstance(value, (Enumerated, Other)):
        text = str(value)
    else:
        text = str(value).strip()
        if not text:
            return NOT_RECORDED
    if spec.unit:
        text = f"{text} {spec.unit}"
    return text


def section_is_empty(section: Section, snapshot: ExaminationSnapshot) -> bool:
    return all(is_empty(snapshot.get(key)) for key in section.fields)


def _field_view(key: str, snapshot: ExaminationSnapshot) -> FieldView:
    spec = FIELDS[key]
    value = snapshot.get(key)
    formatted = format_value(spec, value)
    return FieldView(
        key=key,
        label=format_field_name(key),
        value=str(formatted),
        rich=isinstance(formatted, SafeMarkup),
        empty=is_empty(value),
    )


def _acuity_table(section: Section) -> TableView:
    cells: Dict[Tuple[str, str], str] = {}
    for key in section.fields:
        m = ACUITY_RX.match(key)
        if m:
            cells[(m.group("eye"), m.group("measure"))] = key
    rows = [
        TableRow(label=eye.upper(), cells=[cells[(eye, measure)] for measure in ACUITY_MEASURES])
        for eye in EYES
        if all((eye, measure) in cells for measure in ACUITY_MEASURES)
    ]
    return TableView(columns=[m.upper() for m in ACUITY_MEASURES], rows=rows)


def _eye_pair_table(section: Section) -> TableView:
    parts: List[str] = []
    for key in section.fields:
        base = key[:-3]
        if base not in parts:
            parts.append(base)
    rows = [TableRow(label=format_field_name(part), cells=[f"{part}_{eye}" for eye in EYES]) for part in parts]
    return TableView(columns=[eye.upper() for eye in EYES], rows=rows)


def _table_for(section: Section) -> Optional[TableView]:
    if section.style == "visualAcuityTable":
        return _acuity_table(section)
    if section.style == "eyePairTable":
        return _eye_pair_table(section)
    return None


def render_section(section: Section, snapshot: ExaminationSnapshot) -> SectionView:
    empty = section_is_empty(section, snapshot)
    return SectionView(
        name=section.name,
        style=section.style,
        empty=empty,
        collapsed=empty,
        fields=[_field_view(key, snapshot) for key in section.fields],
        table=_table_for(section),
    )


def render_interactive(snapshot: ExaminationSnapshot) -> List[SectionView]:
    return [render_section(section, snapshot) for section in sections_table()]


def build_report(snapshot: ExaminationSnapshot, context: Optional[VisitContext] = None, title: Optional[str] = None) -> ReportView:
    return ReportView(
        title=title or settings.report_title,
        visit_id=snapshot.visit_id,
        context=context or VisitContext(),
        sections=render_interactive(snapshot),
        missing_kinds=sorted(snapshot.missing_kinds),
    )


def render_printable(snapshot: ExaminationSnapshot, context: Optional[VisitContext] = None, title: Optional[str] = None) -> str:
    """Self-contained printable HTML document for the snapshot."""
    report = build_report(snapshot, context, title)
    template = _env.get_template("examination_report.html")
    html = template.render(report=report, fields={f.key: f for s in report.sections for f in s.fields})
    logger.info(f"printable report for visit {snapshot.visit_id}: {len(report.sections)} sections, {len(html)} bytes")
    return html
