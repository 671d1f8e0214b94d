"""Text repair helpers for webhook responses with broken encodings."""

# Characters that show up when UTF-8 bytes were decoded as Latin-1/cp1252
MOJIBAKE_MARKERS = ("Ã", "Â")


def repair_mojibake(text: str) -> str:
    """Undo UTF-8 text that was mis-decoded as cp1252 or Latin-1.

    Text without the typical markers is returned unchanged, as is text that
    does not round-trip cleanly.

    Examples:
        >>> repair_mojibake("zitronensÃ¤ure")
        "zitronensäure"
        >>> repair_mojibake("zitronensäure")
        "zitronensäure"
    """
    if not text or not any(marker in text for marker in MOJIBAKE_MARKERS):
        return text

    for encoding in ("cp1252", "latin-1"):
        try:
            return text.encode(encoding).decode("utf-8")
        except UnicodeError:
            continue

    return text
