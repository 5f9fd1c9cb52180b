"""Error taxonomy for the generation lifecycle.

Generation-side failures (request, server, response shape, decode) all derive
from :class:`GenerationError` and abort an attempt before anything is
persisted or any credit is consumed.  Storage, quota, and ledger failures are
separate branches so callers can tell the user whether the image was lost
after a successful remote call or never produced at all.
"""

from __future__ import annotations


class BrainrotError(Exception):
    """Base class for all Brainrot Generator errors."""

    user_message = "Something went wrong. Please try again."

    def __str__(self) -> str:
        text = super().__str__()
        return text or self.user_message


class GenerationError(BrainrotError):
    """The remote generator did not produce a usable image."""

    user_message = "Image generation failed. Please try again."


class RequestError(GenerationError):
    """Transport-level failure (timeout, connection reset) talking to the generator."""

    user_message = "Could not reach the image generator. Check your connection and try again."


class ServerError(GenerationError):
    """The generator answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Generator returned HTTP {status_code}: {message}")

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"The image generator returned an error ({self.status_code}): {self.message}"


class ResponseShapeError(GenerationError):
    """2xx response without any recognizable image URL or base64 payload."""

    user_message = "The image generator response did not contain an image."

    def __init__(self, raw_response: str):
        self.raw_response = raw_response
        super().__init__(f"No image reference found in response: {raw_response}")


class DecodeError(GenerationError):
    """Bytes were obtained but are not a valid image."""

    reason = "invalid_image_data"
    user_message = "The generated image data was invalid."


class DownloadFailedError(DecodeError):
    """The bytes downloaded from the image URL could not be decoded."""

    reason = "download_failed"
    user_message = "The generated image could not be downloaded."


class InvalidImageDataError(DecodeError):
    """An inline base64 payload could not be decoded into an image."""

    reason = "invalid_image_data"


class StorageError(BrainrotError):
    """Local file write or read failure."""

    user_message = (
        "The image was generated but could not be saved on this device. "
        "Generating again will start from scratch."
    )


class QuotaExceededError(BrainrotError):
    """Generation attempted with no remaining credits."""

    user_message = "You have reached your image limit."


class LedgerNotConfiguredError(BrainrotError):
    """The usage ledger has not been configured for a user yet."""

    user_message = "Usage manager is not configured."


class LedgerSyncError(BrainrotError):
    """Remote quota read or write failure."""

    user_message = "Your image was saved, but your usage could not be synced."


class MissingKeywordsError(BrainrotError):
    """Generation requested without any keyword."""

    user_message = "Add at least one keyword before generating."
