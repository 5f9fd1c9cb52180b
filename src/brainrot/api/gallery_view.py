"""Gallery listing helpers for the Brainrot Generator API.

Route handlers hand the content store's in-memory gallery to these helpers
to build JSON-ready entries, apply the favorites filter, and paginate.  They
never touch the disk; the store owns persistence.
"""

from __future__ import annotations

from brainrot.core.content_store import ContentStore, GeneratedImage


def gallery_entry(store: ContentStore, image: GeneratedImage) -> dict:
    """Serialize one gallery image for API responses."""
    return {
        "id": image.id,
        "file_name": image.file_name,
        "title": image.title,
        "subtitle": image.subtitle,
        "created_at": image.created_at.isoformat(),
        "is_favorite": store.is_favorite(image),
        "is_last_generated": store.last_generated == image,
        "url": f"/api/gallery/{image.id}/image",
    }


def filter_gallery_entries(entries: list[dict], *, favorites_only: bool = False) -> list[dict]:
    """Apply the favorites filter to gallery entries.

    Args:
        entries: Source gallery entries.
        favorites_only: Whether to keep only favorited entries.

    Returns:
        Filtered gallery entries in their original order.
    """
    if favorites_only:
        return [entry for entry in entries if entry.get("is_favorite")]
    return entries


def paginate_gallery_entries(entries: list[dict], page: int, per_page: int) -> dict:
    """Paginate gallery entries and clamp the requested page to valid bounds.

    Clamping matters after deletes.  If a user is viewing the last gallery page
    and removes the final image on that page, the previous page becomes the new
    last page.

    Args:
        entries: Filtered gallery entries.
        page: Requested one-based page number.
        per_page: Requested items per page.

    Returns:
        Dictionary containing ``total``, ``page``, ``per_page``, ``pages``, and
        ``images`` for the resolved page.
    """
    total = len(entries)
    pages = (total + per_page - 1) // per_page if total > 0 else 1
    resolved_page = min(max(page, 1), pages)

    start = (resolved_page - 1) * per_page
    end = start + per_page

    return {
        "total": total,
        "page": resolved_page,
        "per_page": per_page,
        "pages": pages,
        "images": entries[start:end],
    }
