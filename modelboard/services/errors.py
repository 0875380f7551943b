"""
Merge pipeline error taxonomy.

Everything the pipeline can classify resolves to a terminal staging
status on the offending record; only unexpected collaborator failures
escape a batch.
"""

from typing import Optional

from modelboard.db.models.staging import StagingStatus


class MergeError(Exception):
    """Base class for per-record merge outcomes other than approval."""

    status: Optional[StagingStatus] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnresolvedIdentity(MergeError):
    """No confident model match. Informational: the model is probably not onboarded yet."""
    status = StagingStatus.SKIPPED


class UnknownMetric(MergeError):
    """The benchmark key is not configured."""
    status = StagingStatus.SKIPPED


class OutOfRangeValue(MergeError):
    """Value outside the accepted range; needs review, never clamped."""
    status = StagingStatus.FLAGGED


class ExcessiveDrift(MergeError):
    """New value too far from the canonical one; possible mis-match or source error."""
    status = StagingStatus.FLAGGED


class StorageFailure(MergeError):
    """Commit of a single record failed. The record stays pending for the next run."""
    status = None

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original
