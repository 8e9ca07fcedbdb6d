# buildflow/core/exceptions.py
"""
Buildflow exception hierarchy.

Protocol and tool failures never surface as exceptions to the caller; they are
logged or turned into tool results. What remains here is what a caller of the
session has to react to.
"""


class BuildflowError(Exception):
    """Base class for all buildflow errors."""


class ProtocolError(BuildflowError, ValueError):
    """A stream line that does not decode into a known event."""


class ModelBackendError(BuildflowError):
    """The model collaborator could not produce a response."""

    hint = "Check the model endpoint in .buildcoder/config.yaml and try again."


class ModelAuthError(ModelBackendError):
    """The model collaborator rejected our credential."""

    hint = ("Set the environment variable named by model.token_env, or by the token_env of the selected "
            "model.providers entry, in .buildcoder/config.yaml.")


class ModelUnavailableError(ModelBackendError):
    """The model collaborator could not be reached or failed server-side."""


class SessionBusyError(BuildflowError):
    """New input arrived while a turn is still in flight."""


class NoPendingPlanError(BuildflowError):
    """approve/reject was called with no plan awaiting a decision."""


class SessionClosedError(BuildflowError):
    """The session was exited and accepts no further commands."""


class CollaboratorError(BuildflowError):
    """A tool collaborator (sandbox, image search, store) failed; reported back to the model."""


class ImageSearchError(CollaboratorError):
    pass


class SandboxError(CollaboratorError):
    pass
