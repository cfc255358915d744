class LabReaperError(Exception):
    """Base class for errors that stop a run before anything is deleted."""


class ConfigError(LabReaperError):
    pass


class PreflightError(LabReaperError):
    """A prerequisite is missing; ``remedy`` tells the user how to fix it."""

    def __init__(self, message: str, remedy: str = ''):
        super().__init__(message)
        self.remedy = remedy
