from typing import Any, Dict, List, Optional, Sequence


class StrokeModelError(Exception):
    """Base class for every error raised by the stroke pipeline."""


class SchemaMismatch(StrokeModelError, ValueError):
    """A dataset or request does not conform to the fit-time schema."""

    def __init__(
        self,
        column: str,
        detail: str,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.column = column
        self.detail = detail
        self.errors = errors or [{"column": column, "detail": detail}]
        super().__init__(f"{column}: {detail}")


class SplitError(StrokeModelError, ValueError):
    pass


class FitError(StrokeModelError):
    """Training aborted; nothing should be persisted."""


class ConvergenceFailure(FitError):
    pass


class RankDeficiency(FitError):
    def __init__(self, features: Sequence[str], detail: str):
        self.features = list(features)
        super().__init__(f"{detail}: {', '.join(self.features)}")


class ArtifactLoadFailure(StrokeModelError):
    pass
