class ProctorError(Exception):
    """Base class for monitor failures. None of them are fatal to the process."""


class CapabilityUnavailable(ProctorError):
    """A perception model has not finished loading (or failed to load)."""


class CameraAccessDenied(ProctorError):
    """Camera permission refused or no video device delivering frames."""


class InferenceFailure(ProctorError):
    """A detector call failed; the current cycle is abandoned."""


class GeometryDegenerate(ProctorError):
    """Landmarks cannot produce a head pose (e.g. zero eye span)."""


class CapabilityLost(ProctorError):
    """A capability went away mid-session; monitoring has to stop."""
