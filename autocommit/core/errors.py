"""
Error taxonomy shared by the registry, the change detector, the message
synthesizer and the commit pipeline.

Every failure surfaces to the caller as a subclass of AutocommitError;
nothing in the core retries or recovers locally.
"""


class AutocommitError(Exception):
    """Base class for every failure raised by autocommit."""
    pass


class ParseError(AutocommitError):
    """A scheduler table line owned by autocommit is malformed."""
    pass


class DuplicateEntry(AutocommitError):
    """The repository path is already registered."""
    pass


class NotFound(AutocommitError):
    """No registered entry exists for the repository path."""
    pass


class NotAWorkingTree(AutocommitError):
    """The path is not the root of a git working tree."""
    pass


class MissingCredential(AutocommitError):
    """A required credential is absent from the configuration."""
    pass


class SummarizationFailure(AutocommitError):
    """The summarization service call failed."""
    pass


class VersionControlFailure(AutocommitError):
    """A git status, diff, stage, commit or push operation failed."""
    pass


class IOFailure(AutocommitError):
    """Reading or installing the scheduler table failed."""
    pass
