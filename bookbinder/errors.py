"""Typed errors raised (or recorded) by the binding pipeline."""

from typing import Optional


class BookBinderError(Exception):
    """Base class for every pipeline error.

    Carries enough context to tell which fragment, chapter or TOC pass
    the failure belongs to.
    """

    recoverable = False

    def __init__(
        self,
        message: str,
        fragment: Optional[str] = None,
        chapter_id: Optional[str] = None,
        iteration: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.fragment = fragment
        self.chapter_id = chapter_id
        self.iteration = iteration

    def context(self) -> dict:
        ctx = {}
        if self.fragment is not None:
            ctx['fragment'] = self.fragment
        if self.chapter_id is not None:
            ctx['chapter_id'] = self.chapter_id
        if self.iteration is not None:
            ctx['iteration'] = self.iteration
        return ctx

    def __str__(self) -> str:
        ctx = self.context()
        if not ctx:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in ctx.items())
        return f"{self.message} ({details})"


class ConfigError(BookBinderError):
    pass


class InvalidContentTree(BookBinderError):
    pass


class MissingRequiredFragment(BookBinderError):
    pass


class RenderEngineFailure(BookBinderError):
    pass


class RenderEngineTimeout(BookBinderError):
    pass


class RenderCancelled(BookBinderError):
    pass


class AnchorNotFound(BookBinderError):
    """Chapter marker was never seen in the rendered content.

    Recorded as a diagnostic; the chapter falls back to content page 0.
    """

    recoverable = True


class TocConvergenceExceeded(BookBinderError):
    """TOC page count never settled within the attempt cap.

    Recorded as a diagnostic; the last rendered TOC is used.
    """

    recoverable = True
