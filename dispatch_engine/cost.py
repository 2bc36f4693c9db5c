import math

ASCII_SEGMENT_LENGTH = 160
UNICODE_SEGMENT_LENGTH = 70


def is_unicode(text: str) -> bool:
    return any(ord(ch) > 127 for ch in text)


def ucs2_length(text: str) -> int:
    """Length in UTF-16 code units; characters outside the BMP count twice."""
    return len(text.encode("utf-16-le")) // 2


def message_cost(text: str) -> int:
    """Credits charged for one message body.

    One credit per 160 characters for plain ASCII, per 70 UTF-16 code units
    once any character falls outside ASCII.
    """
    if is_unicode(text):
        return math.ceil(ucs2_length(text) / UNICODE_SEGMENT_LENGTH)
    return math.ceil(len(text) / ASCII_SEGMENT_LENGTH)
