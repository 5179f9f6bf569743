"""mdpreview error hierarchy.

All mdpreview-specific errors inherit from PreviewError for easy catching.
"""


class PreviewError(Exception):
    """Base error for all mdpreview operations."""


class ConfigError(PreviewError):
    """Invalid or missing configuration (bad CLI arguments, bad paths)."""


class ContentError(PreviewError):
    """The markdown file could not be read or rendered."""


class ChannelError(PreviewError):
    """A message could not be written to a notification channel."""


class RebuildError(PreviewError):
    """The external rebuild step could not be started."""


class VendorError(PreviewError):
    """A browser library could not be downloaded."""
