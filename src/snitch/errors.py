"""Exception taxonomy for Snitch."""


class SnitchError(Exception):
    """Base class for all Snitch errors."""


class NotInProject(SnitchError):
    """No project root could be resolved for the active buffer."""

    def __init__(self, start: object):
        self.start = start
        super().__init__(f"Not inside a project: {start}")


class UnknownTemplate(SnitchError):
    """A capture template key is not configured."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unknown capture template: {key!r}")


class SessionGuardMismatch(SnitchError):
    """A finalize event belongs to a different capture flow than the pending session."""

    def __init__(self, session_key: str, finalize_key: str):
        self.session_key = session_key
        self.finalize_key = finalize_key
        super().__init__(
            f"Finalize for template {finalize_key!r} does not match pending session {session_key!r}"
        )


class StaleMarker(SnitchError):
    """The captured region can no longer be resolved in its source buffer."""


class PatternMismatch(SnitchError):
    """Buffer text at an overlay no longer matches the link pattern."""
