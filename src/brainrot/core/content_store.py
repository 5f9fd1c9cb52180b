"""File-backed gallery of generated images.

The store owns three pieces of state:

- ``gallery``: every saved image, newest first
- ``favorites``: an ordered subset of the gallery
- ``last_generated``: the image shown on the home screen

Layout on disk::

    <data_dir>/generated_images.json     index (full rewrite on every mutation)
    <data_dir>/GeneratedImages/<file>.png one PNG per entry

Index schema::

    {
      "images": [
        {"id", "fileName", "title", "subtitle", "createdAt", "isFavorite"}
      ],
      "lastGeneratedID": "<id>" | null
    }

The index is loaded once at construction.  Loading is forgiving: a missing or
invalid index yields an empty gallery, and entries whose PNG is missing or
undecodable are skipped so one bad file never blocks the rest of the gallery.

Every mutation prunes favorites against the gallery and then rewrites the
whole index.  Image files and the index are written to a temporary file in the
same directory and moved into place with :func:`os.replace`, so a write either
completes or leaves nothing behind.
"""

from __future__ import annotations

import io
import json
import logging
import os
import tempfile
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from PIL import Image

from .errors import StorageError

logger = logging.getLogger(__name__)


class GeneratedImage:
    """A saved generation result.

    Identity is the ``id``: two instances with the same id are equal even if
    their pixel data differs.  Favorite status is tracked by the store, not
    on the image.
    """

    __slots__ = ("id", "image", "title", "subtitle", "created_at", "file_name")

    def __init__(
        self,
        image: Image.Image,
        title: str,
        subtitle: str | None,
        file_name: str,
        *,
        id: str | None = None,
        created_at: datetime | None = None,
    ) -> None:
        self.id = id or str(uuid.uuid4())
        self.image = image
        self.title = title
        self.subtitle = subtitle
        self.created_at = created_at or datetime.now(timezone.utc)
        self.file_name = file_name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeneratedImage):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"GeneratedImage(id={self.id!r}, title={self.title!r}, file_name={self.file_name!r})"


def encode_png(image: Image.Image) -> bytes:
    """Encode ``image`` as PNG bytes in memory."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` via a temporary file and :func:`os.replace`."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        # Covers cancellation as well as I/O errors: no partial file survives.
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _parse_timestamp(value) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return datetime.now(timezone.utc)


class ContentStore:
    """Durable gallery, favorites subset, and last-generated pointer.

    Args:
        images_dir: Directory that holds one PNG file per entry.
        index_path: Path to the JSON index file.
    """

    def __init__(self, images_dir: Path, index_path: Path):
        self.images_dir = Path(images_dir)
        self.index_path = Path(index_path)
        self.images_dir.mkdir(parents=True, exist_ok=True)
        self.index_path.parent.mkdir(parents=True, exist_ok=True)

        self._gallery: list[GeneratedImage] = []
        self._favorites: list[GeneratedImage] = []
        self._last_generated: GeneratedImage | None = None
        self._listeners: list[Callable[[ContentStore], None]] = []

        self._load()
        logger.info(
            f"Loaded content store from {self.index_path} "
            f"({len(self._gallery)} images, {len(self._favorites)} favorites)"
        )

    # ------------------------------------------------------------------
    # Read accessors.
    # ------------------------------------------------------------------

    @property
    def gallery(self) -> list[GeneratedImage]:
        return list(self._gallery)

    @property
    def favorites(self) -> list[GeneratedImage]:
        return list(self._favorites)

    @property
    def last_generated(self) -> GeneratedImage | None:
        return self._last_generated

    def get(self, image_id: str) -> GeneratedImage | None:
        """Look up a gallery image by id."""
        return next((image for image in self._gallery if image.id == image_id), None)

    def is_favorite(self, image: GeneratedImage) -> bool:
        return image in self._favorites

    def image_path(self, image: GeneratedImage) -> Path:
        return self.images_dir / image.file_name

    def add_listener(self, callback: Callable[[ContentStore], None]) -> Callable[[], None]:
        """Register ``callback`` to run after every mutation.

        Returns:
            A function that unregisters the callback.
        """
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    # ------------------------------------------------------------------
    # Mutations.
    # ------------------------------------------------------------------

    def save_generation(
        self, image: Image.Image, title: str, subtitle: str | None = None
    ) -> GeneratedImage:
        """Persist a freshly generated image and make it the last generated.

        The PNG is encoded in memory before anything touches the disk, so an
        encoding failure leaves no file behind.

        Args:
            image: Decoded image returned by the generator.
            title: Display title.
            subtitle: Optional display subtitle.

        Returns:
            The new :class:`GeneratedImage` handle.

        Raises:
            StorageError: If encoding, the image write, or the index write fails.
        """
        try:
            data = encode_png(image)
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not encode image as PNG: {e}") from e

        image_id = str(uuid.uuid4())
        file_name = f"{uuid.uuid4()}.png"
        file_path = self.images_dir / file_name

        try:
            atomic_write_bytes(file_path, data)
        except OSError as e:
            raise StorageError(f"Could not write image file {file_path}: {e}") from e

        generated = GeneratedImage(image, title, subtitle, file_name, id=image_id)
        previous_last = self._last_generated

        self._gallery.insert(0, generated)
        self._last_generated = generated

        try:
            self._write_index()
        except OSError as e:
            # Undo the in-memory insert and the file so disk and memory agree.
            self._gallery.remove(generated)
            self._last_generated = previous_last
            file_path.unlink(missing_ok=True)
            raise StorageError(f"Could not write gallery index {self.index_path}: {e}") from e

        logger.info(f"Saved generated image {generated.id} as {file_name}")
        self._notify()
        return generated

    def toggle_favorite(self, image: GeneratedImage) -> bool:
        """Flip favorite status of ``image``.

        Returns:
            True if the image is now a favorite, False otherwise.
        """
        if image in self._favorites:
            self._favorites.remove(image)
        else:
            self._favorites.insert(0, image)

        self._persist()
        return self.is_favorite(image)

    def delete(self, image: GeneratedImage) -> None:
        """Remove ``image`` from gallery and favorites and delete its file.

        Deleting an image that is no longer in the gallery is a no-op apart
        from the (idempotent) index rewrite.  File removal failures are logged
        and do not undo the logical deletion.
        """
        self._gallery = [entry for entry in self._gallery if entry != image]
        self._favorites = [entry for entry in self._favorites if entry != image]
        if self._last_generated == image:
            self._last_generated = self._gallery[0] if self._gallery else None

        file_path = self.images_dir / image.file_name
        try:
            file_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove image file {file_path}: {e}")

        self._persist()
        logger.info(f"Deleted generated image {image.id}")

    # ------------------------------------------------------------------
    # Persistence.
    # ------------------------------------------------------------------

    def _prune_favorites(self) -> None:
        gallery_ids = {image.id for image in self._gallery}
        self._favorites = [image for image in self._favorites if image.id in gallery_ids]

    def _index_document(self) -> dict:
        favorite_ids = {image.id for image in self._favorites}
        return {
            "images": [
                {
                    "id": image.id,
                    "fileName": image.file_name,
                    "title": image.title,
                    "subtitle": image.subtitle,
                    "createdAt": image.created_at.isoformat(),
                    "isFavorite": image.id in favorite_ids,
                }
                for image in self._gallery
            ],
            "lastGeneratedID": self._last_generated.id if self._last_generated else None,
        }

    def _write_index(self) -> None:
        self._prune_favorites()
        data = json.dumps(self._index_document(), indent=2).encode("utf-8")
        atomic_write_bytes(self.index_path, data)

    def _persist(self) -> None:
        try:
            self._write_index()
        except OSError as e:
            logger.error(f"Failed to save gallery index {self.index_path}: {e}")
        self._notify()

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self)

    def _load(self) -> None:
        if not self.index_path.exists():
            return

        try:
            with open(self.index_path, encoding="utf-8") as handle:
                state = json.load(handle)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load gallery index {self.index_path}: {e}")
            return

        if not isinstance(state, dict):
            logger.warning(f"Ignoring malformed gallery index {self.index_path}")
            return

        raw_entries = state.get("images")
        if not isinstance(raw_entries, list):
            raw_entries = []

        loaded: list[GeneratedImage] = []
        favorite_ids: set[str] = set()

        for entry in raw_entries:
            if not isinstance(entry, dict):
                continue

            image_id = entry.get("id")
            file_name = entry.get("fileName")
            if not image_id or not file_name:
                continue

            file_path = self.images_dir / file_name
            try:
                with Image.open(file_path) as handle:
                    handle.load()
                    image = handle.copy()
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                logger.debug(f"Skipping gallery entry {image_id}: {e}")
                continue

            generated = GeneratedImage(
                image,
                entry.get("title") or "",
                entry.get("subtitle"),
                file_name,
                id=str(image_id),
                created_at=_parse_timestamp(entry.get("createdAt")),
            )
            loaded.append(generated)
            if entry.get("isFavorite"):
                favorite_ids.add(generated.id)

        self._gallery = loaded
        self._favorites = [image for image in loaded if image.id in favorite_ids]

        last_id = state.get("lastGeneratedID")
        match = next((image for image in loaded if image.id == last_id), None) if last_id else None
        self._last_generated = match or (loaded[0] if loaded else None)
