"""
Destination Resolver

Turns a storage locator such as ``s3://bucket/products/large/apple.png`` into
a ResolvedTarget, and renders the preview shown at the top of every transcript.
"""

from typing import Optional

from src.core.exceptions import InvalidRequestError
from src.modules.conversion.models import ResolvedTarget

USAGE_EXAMPLE = (
    "This function requires 'source' and 'destination' query parameters\n"
    "Example:\n\n"
    "/api/v1/convert?source=https://domain.com/heavy-image.png"
    "&destination=s3://bucket-name/folder/new-file-name\n"
)

SCHEME_MARKER = "://"


def clean_file_name(file_name: str) -> str:
    """Replace the extension with webp, or append .webp if there is none."""
    if "." in file_name:
        stem, _, _extension = file_name.rpartition(".")
        return f"{stem}.webp"
    return f"{file_name}.webp"


def is_http_url(url: Optional[str]) -> bool:
    return bool(url) and url.strip().lower().startswith(("http://", "https://"))


def resolve_destination(destination: Optional[str], source_url: Optional[str]) -> ResolvedTarget:
    """
    Validate the request locators and split the destination.

    Raises:
        InvalidRequestError: If either locator is missing or malformed
    """
    if not destination or not source_url:
        raise InvalidRequestError("Missing 'source' or 'destination'.\n\n" + USAGE_EXAMPLE)

    if SCHEME_MARKER not in destination:
        raise InvalidRequestError(
            f"Destination '{destination}' must look like scheme://bucket/path/file\n\n"
            + USAGE_EXAMPLE
        )

    if not is_http_url(source_url):
        raise InvalidRequestError(
            f"Source '{source_url}' must be an http(s) URL\n\n" + USAGE_EXAMPLE
        )

    # "s3://bucket/a/b/file.png" -> ["s3:", "", "bucket", "a", "b", "file.png"]
    segments = destination.strip().split("/")
    if len(segments) < 4 or not segments[2] or not segments[-1]:
        raise InvalidRequestError(
            f"Destination '{destination}' needs both a bucket and a file name\n\n"
            + USAGE_EXAMPLE
        )

    # Bucket, folders and file name must all be plain, non-empty names
    path_segments = segments[3:-1]
    if any(segment in ("", ".", "..") for segment in [segments[2]] + path_segments + [segments[-1]]):
        raise InvalidRequestError(
            f"Destination '{destination}' contains empty or relative path segments\n\n"
            + USAGE_EXAMPLE
        )

    return ResolvedTarget(
        bucket=segments[2],
        key_prefix="".join(f"{segment}/" for segment in path_segments),
        base_file_name=clean_file_name(segments[-1]),
    )


def render_preview(source_url: str, target: ResolvedTarget, thumbnail_width: int) -> str:
    """Summarise where the artifacts are headed."""
    return (
        f"Source: {source_url}\n"
        f"Destination: {target.bucket}/{target.full_size_key}\n"
        f"Thumbnail: {target.bucket}/{target.thumbnail_key(thumbnail_width)}\n\n"
    )
