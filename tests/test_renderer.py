from html.parser import HTMLParser

from eyeexam.models.api import VisitContext
from eyeexam.models.schema import Enumerated, Other, SafeMarkup
from eyeexam.services.renderer import NONE_LISTED, NOT_RECORDED, build_report, format_value, render_interactive, render_printable
from eyeexam.services.snapshot import empty_snapshot, merge
from eyeexam.services.vocabulary import SECTIONS, field_spec
from eyeexam.utils import strip_markup


class FieldCollector(HTMLParser):
    """Collects the text of every <span data-field> and the data-empty flag of every section."""

    def __init__(self):
        super().__init__()
        self.fields = {}
        self.sections = []
        self._key = None
        self._depth = 0
        self._text = []

    def handle_starttag(self, tag, attrs):
        attrs = dict(attrs)
        if tag == "section":
            self.sections.append((attrs.get("data-section"), attrs.get("data-empty")))
        if tag == "span":
            if self._key is not None:
                self._depth += 1
            elif "data-field" in attrs:
                self._key = attrs["data-field"]
                self._depth = 0
                self._text = []

    def handle_endtag(self, tag):
        if tag == "span" and self._key is not None:
            if self._depth:
                self._depth -= 1
            else:
                self.fields[self._key] = "".join(self._text)
                self._key = None

    def handle_data(self, data):
        if self._key is not None:
            self._text.append(data)


def populated_snapshot():
    snapshot = empty_snapshot("v1")
    merge(snapshot, {
        "primary_complaint": SafeMarkup("<p>Blurred <strong>vision</strong></p>"),
        "current_contact_lens_use": False,
        "allergies": ["Penicillin", "Latex"],
        "lens_type": "<script>alert(1)</script>",
        "distance_od_ucva": "6/9",
        "distance_os_bcva": "6/6",
        "iop_method": Other("Rebound"),
        "right_eye": "18",
        "lids_od": Enumerated("Normal"),
        "lids_os": Other("chalazion"),
        "plan": SafeMarkup("<ul><li>Review in 2 weeks</li></ul>"),
    })
    return snapshot


def parse(html):
    collector = FieldCollector()
    collector.feed(html)
    return collector


def test_format_value_rules():
    assert format_value(field_spec("allergies"), []) == NONE_LISTED
    assert format_value(field_spec("lens_type"), None) == NOT_RECORDED
    assert format_value(field_spec("current_contact_lens_use"), False) == "No"
    assert format_value(field_spec("right_eye"), "18") == "18 mmHg"
    assert format_value(field_spec("lids_os"), Other("chalazion")) == "Other: chalazion"
    assert format_value(field_spec("lids_os"), Other()) == "Other"
    assert format_value(field_spec("allergies"), ["Penicillin", "Latex"]) == "Penicillin, Latex"


def test_empty_snapshot_renders_every_section_flagged_empty():
    views = render_interactive(empty_snapshot("v1"))
    assert [v.name for v in views] == [s.name for s in SECTIONS]
    assert all(v.empty and v.collapsed for v in views)

    html = render_printable(empty_snapshot("v1"))
    sections = parse(html).sections
    assert [name for name, _ in sections] == [s.name for s in SECTIONS]
    assert {flag for _, flag in sections} == {"true"}
    assert html.count("(no data recorded)") == len(SECTIONS)


def test_partially_filled_section_is_not_empty():
    snapshot = empty_snapshot("v1")
    merge(snapshot, {"right_eye": "18"})
    views = {v.name: v for v in render_interactive(snapshot)}
    iop = views["Intraocular Pressure"]
    assert not iop.empty
    assert iop.field("left_eye").value == NOT_RECORDED
    assert views["Dilation"].empty


def test_printable_and_interactive_values_match():
    snapshot = populated_snapshot()
    views = render_interactive(snapshot)
    printed = parse(render_printable(snapshot)).fields
    for view in views:
        for f in view.fields:
            expected = strip_markup(f.value) if f.rich else f.value
            got = " ".join(printed[f.key].split()) if f.rich else printed[f.key]
            assert got == expected, f.key


def test_interactive_values():
    views = {v.name: v for v in render_interactive(populated_snapshot())}
    history = views["Patient History"]
    assert history.field("current_contact_lens_use").value == "No"
    assert history.field("allergies").value == "Penicillin, Latex"
    assert history.field("family_history").value == NONE_LISTED
    assert history.field("primary_complaint").rich
    assert views["Anterior Segment"].field("lids_os").value == "Other: chalazion"
    assert views["Intraocular Pressure"].field("iop_method").value == "Other: Rebound"
    assert views["Vital Signs"].empty


def test_acuity_and_eye_pair_tables():
    views = {v.name: v for v in render_interactive(populated_snapshot())}
    acuity = views["Distance Visual Acuity"].table
    assert acuity.columns == ["UCVA", "SCVA", "BCVA"]
    assert [r.label for r in acuity.rows] == ["OD", "OS"]
    assert acuity.rows[0].cells == ["distance_od_ucva", "distance_od_scva", "distance_od_bcva"]
    anterior = views["Anterior Segment"].table
    assert anterior.columns == ["OD", "OS"]
    assert anterior.rows[0].label == "Lids"
    assert anterior.rows[0].cells == ["lids_od", "lids_os"]


def test_plain_text_is_escaped_and_rich_text_embedded():
    html = render_printable(populated_snapshot())
    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html
    assert "<p>Blurred <strong>vision</strong></p>" in html
    assert "<ul><li>Review in 2 weeks</li></ul>" in html


def test_report_header_and_missing_kinds():
    snapshot = empty_snapshot("v1")
    snapshot.missing_kinds = frozenset({"fundus_examination"})
    context = VisitContext(patient_name="Ada Obi", visit_date="2026-03-02", visit_type="Follow-up")
    report = build_report(snapshot, context)
    assert report.title == "Examination Report"
    assert report.missing_kinds == ["fundus_examination"]
    html = render_printable(snapshot, context, title="Eye Clinic")
    assert "<title>Eye Clinic</title>" in html
    assert "Ada Obi" in html
    assert "fundus_examination" in html


def test_single_acuity_value_marks_section_filled():
    snapshot = empty_snapshot("v1")
    merge(snapshot, {"distance_od_ucva": "6/6", "distance_os_ucva": None})
    views = {v.name: v for v in render_interactive(snapshot)}
    acuity = views["Distance Visual Acuity"]
    assert not acuity.empty
    assert acuity.field("distance_od_ucva").value == "6/6"
    assert acuity.field("distance_os_ucva").value == NOT_RECORDED
    assert views["Near Visual Acuity"].empty

    sections = dict(parse(render_printable(snapshot)).sections)
    assert sections["Distance Visual Acuity"] == "false"
    assert sections["Near Visual Acuity"] == "true"
