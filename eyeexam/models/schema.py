from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Literal, Optional, Tuple, Union

from markupsafe import Markup

Eye = Literal["od", "os"]
EYES: Tuple[Eye, Eye] = ("od", "os")

SectionStyle = Literal["keyValueGrid", "eyePairTable", "visualAcuityTable", "richTextBlock"]

OTHER = "Other"


class FieldType(Enum):
    TEXT = "text"
    RICH_TEXT = "rich_text"
    ENUM = "enum"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    LIST = "list"


@dataclass(frozen=True)
class FieldSpec:
    key: str
    type: FieldType = FieldType.TEXT
    unit: Optional[str] = None
    has_other: bool = False  # value may be Other(text)

    @property
    def eye(self) -> Optional[Eye]:
        if self.key.endswith("_od"):
            return "od"
        if self.key.endswith("_os"):
            return "os"
        return None


@dataclass(frozen=True)
class Section:
    name: str
    fields: Tuple[str, ...]
    style: SectionStyle = "keyValueGrid"


# Tagged eye value: either one of the enumerated options or free text entered
# because "Other" was selected.
@dataclass(frozen=True)
class Enumerated:
    tag: str

    def __str__(self):
        return self.tag


@dataclass(frozen=True)
class Other:
    text: str = ""

    def __str__(self):
        return f"{OTHER}: {self.text}" if self.text else OTHER


EyeValue = Union[Enumerated, Other]


def eye_value(value: Any, other: Any = None) -> Optional[EyeValue]:
    """Build a tagged value from the wire pair; the companion is dropped unless value is Other."""
    if isinstance(value, (Enumerated, Other)):
        return value
    value = "" if value is None else str(value).strip()
    if not value:
        return None
    if value == OTHER:
        return Other("" if other is None else str(other).strip())
    return Enumerated(value)


def eye_value_parts(value: Optional[EyeValue]) -> Tuple[str, str]:
    """Inverse of eye_value: (value, other) strings for the wire/form shape."""
    if isinstance(value, Other):
        return OTHER, value.text
    if isinstance(value, Enumerated):
        return value.tag, ""
    return "", ""


@dataclass
class ExaminationSnapshot:
    """Point-in-time composite of a visit's latest sub-records.

    ``values`` always holds every known field key; absent data is None (or an
    empty list for list fields), never a missing key.
    """
    visit_id: Optional[str]
    values: Dict[str, Any]
    missing_kinds: FrozenSet[str] = frozenset()
    sources: Dict[str, Any] = field(default_factory=dict)  # kind -> record id

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)


# rich text produced and sanitised by the editor; embedded as-is
SafeMarkup = Markup
