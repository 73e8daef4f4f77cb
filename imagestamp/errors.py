from __future__ import annotations


class ImageStampError(Exception):
    """Base class for every error raised by the rendering engine."""


class TemplateError(ImageStampError, ValueError):
    """The template document is malformed."""


class InvalidColor(ImageStampError, ValueError):
    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"invalid color: {value!r}")


class UnsupportedFormat(ImageStampError, ValueError):
    def __init__(self, fmt: object) -> None:
        self.format = fmt
        super().__init__(f"unsupported output format: {fmt!r}")


class ElementDrawError(ImageStampError):
    """One element could not be drawn; the render continues without it."""

    def __init__(self, element_id: str | None, message: str) -> None:
        self.element_id = element_id
        super().__init__(f"element {element_id or '?'}: {message}")


class ImageLoadError(ImageStampError):
    """An element's image source could not be fetched or decoded."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"failed to load image {source!r}: {message}")


class BackgroundDecodeError(ImageStampError):
    pass


class EncodeError(ImageStampError):
    pass


class StorageError(ImageStampError):
    pass


class InvalidTransition(ImageStampError):
    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"invalid job transition: {current} -> {target}")
