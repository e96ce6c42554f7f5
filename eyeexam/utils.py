import html, re

TAG_RX = re.compile(r"<[^>]*>")
TIME_RX = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
NUMBER_RX = re.compile(r"^-?\d+(?:\.\d+)?$")


def to_float(s) -> float | None:
    if s is None or isinstance(s, bool):
        return None
    s = str(s).strip().replace(" ", "")
    # "1,234.50" uses thousands separators, "12,5" a decimal comma
    s = s.replace(",", "") if "." in s else s.replace(",", ".")
    if not NUMBER_RX.match(s):
        return None
    return float(s)


def strip_markup(text) -> str:
    """Plain text of a marked-up string: tags removed, entities decoded, whitespace collapsed."""
    if text is None:
        return ""
    plain = html.unescape(TAG_RX.sub("", str(text)))
    return " ".join(plain.split())


def is_blank_markup(text) -> bool:
    return not strip_markup(text)


def is_empty(value) -> bool:
    # null, empty string, or empty list; False and 0 are values
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def is_time(value) -> bool:
    return bool(value) and bool(TIME_RX.match(str(value).strip()))
