"""Human-readable helpers used in transcripts."""


def format_file_size(byte_length: int) -> str:
    """
    Takes a byte length such as 38043260 and returns "38 MB".

    Digits are truncated, not rounded. Any non-empty payload under 1000 bytes
    reports as "1 KB".
    """
    if byte_length < 1:
        return "0 KB"
    if byte_length < 1000:
        return "1 KB"

    digits = str(byte_length)
    if byte_length < 1_000_000:
        return f"{digits[:-3]} KB"
    return f"{digits[:-6]} MB"


def extract_file_name_from_url(url: str) -> str:
    """Last path segment of a URL without its query string, or the URL itself."""
    last_section = url.rstrip("/").split("/")[-1] if url else ""
    last_section = last_section.split("?", 1)[0].split("#", 1)[0]
    return last_section or url
