"""Shared type definitions for mdpreview."""

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Literal

# Kind of watched target
type TargetKind = Literal["content", "source"]

# Called with the path of the changed file
type ChangeCallback = Callable[[Path], Any]

# Called after a successful rebuild; may be sync or async
type SuccessCallback = Callable[[], Any]

# Rendered HTML fragment (the body of the page, not a full document)
type HTMLFragment = str

# One push message on a notification channel (the SSE ``data`` payload)
type Message = str

# An external rebuild step: resolves to True on success
type RebuildOperation = Callable[[], Awaitable[bool]]
