import re


def normalize_text(text: str) -> str:
    """Normalize text by standardizing line breaks and whitespace.

    Converts different line break formats to standard newlines,
    collapses multiple spaces/tabs into single spaces, and reduces
    excessive blank lines.

    Args:
        text: Raw text to normalize.

    Returns:
        str: Normalized and trimmed text.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def trim_words(text: str, num_words: int = 15, more: str = "…") -> str:
    """Keep the first num_words words of text, appending more when cut.

    Whitespace (including line breaks from SAP error payloads) collapses to
    single spaces.

    Examples:
        >>> trim_words("a b c", 2)
        'a b…'
        >>> trim_words("a b", 2)
        'a b'
    """
    words = normalize_text(text).split()
    if len(words) <= num_words:
        return " ".join(words)
    return " ".join(words[:num_words]) + more
