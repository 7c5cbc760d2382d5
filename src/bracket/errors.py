"""
Exceptions raised by the tournament engine.

None of these are fatal: every one is recoverable by resubmitting corrected
input, and the state the caller already holds is never modified.
"""


class TournamentError(Exception):
    """Base class for all engine errors."""


class ValidationError(TournamentError):
    """Input rejected before any state was produced."""


class ScoreRejectedError(ValidationError):
    """A score was entered for a match that cannot accept one yet."""

    def __init__(self, match_id, reason):
        self.match_id = match_id
        self.reason = reason
        super().__init__(f"Cannot record a score for {match_id}: {reason}")


class ImportFormatError(TournamentError):
    """External data could not be turned into a valid tournament."""
