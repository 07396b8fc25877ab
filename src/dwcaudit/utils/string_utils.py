"""String utility functions for cleaning dataset values."""

import re

import regex

# "CODE - Full Name ..."
ACRONYM_DASH_PATTERN = regex.compile(r'^([A-Z][A-Z0-9\-]{1,15})\s+-\s+')
# "CODE Full Name ...", no dash
ACRONYM_SPACE_PATTERN = regex.compile(r'^([A-Z]{2,10})\s+[A-Z]')
# "Full Name (CODE)", codes may be mixed case or accented, e.g. IAvH, UniQuindío
ACRONYM_PAREN_PATTERN = regex.compile(r'\(([A-Z\p{Lu}][\p{L}0-9\-]{1,15})\)\s*$')


def clean_unicode_chars(text):
    """Clean Unicode special characters from a string.

    This removes invisible characters that show up at the start of
    exported tables or inside copied values, including:
    - Byte Order Mark (BOM) characters
    - Zero-width spaces and joiners
    - Directional text markers

    Args:
        text: String to clean

    Returns:
        Cleaned string with Unicode special characters removed
    """
    if not text:
        return text

    text = str(text)

    chars_to_remove = [
        '\ufeff',  # BOM (UTF-8)
        '\ufffe',  # BOM (UTF-16 LE)
        '\u200b',  # Zero-width space
        '\u200c',  # Zero-width non-joiner
        '\u200d',  # Zero-width joiner
        '\u200e',  # Left-to-right mark
        '\u200f',  # Right-to-left mark
        '\u202a',  # Left-to-right embedding
        '\u202b',  # Right-to-left embedding
        '\u202c',  # Pop directional formatting
        '\u202d',  # Left-to-right override
        '\u202e',  # Right-to-left override
        '\u2060',  # Word joiner
        '\u2066',  # Left-to-right isolate
        '\u2067',  # Right-to-left isolate
        '\u2068',  # First strong isolate
        '\u2069',  # Pop directional isolate
    ]

    for char in chars_to_remove:
        text = text.replace(char, '')

    return text


def sanitize_tsv_field(value) -> str:
    """Normalize a value destined for TSV output.

    Replaces any newlines / carriage returns / tabs with a single space,
    collapses consecutive whitespace, and strips leading/trailing spaces.
    Non-string values are coerced to string. None becomes empty string.
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    value = value.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    value = re.sub(r"\s+", " ", value)
    return value.strip()


def extract_acronym(raw):
    """Extract an institution acronym from a raw institutionCode string.

    Patterns are tried in order, first match wins:
        "BMNH - The Natural History Museum, London" -> "BMNH"
        "MNHN Museum national d'Histoire naturelle" -> "MNHN"
        "Smithsonian Institution (USNM)" -> "USNM"
        "Museo Nacional" -> "Museo Nacional"

    Surrounding quotes and whitespace are stripped first. When nothing
    matches, the cleaned string is returned unchanged.

    Args:
        raw: The raw institutionCode value

    Returns:
        The extracted acronym or the cleaned original
    """
    s = raw.strip('" \t')

    match = ACRONYM_DASH_PATTERN.match(s)
    if match:
        return match.group(1)

    match = ACRONYM_SPACE_PATTERN.match(s)
    if match:
        return match.group(1)

    match = ACRONYM_PAREN_PATTERN.search(s)
    if match:
        return match.group(1)

    return s
