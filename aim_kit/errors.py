from __future__ import annotations


class DetectionError(Exception):
    """
    Base class for failures raised by the aim_kit detection stages.
    """


class MalformedInputError(DetectionError, ValueError):
    """
    Raw tensor with the wrong rank/column count, invalid frame geometry, or a
    box that violates the Detection invariants.
    """


class InferenceFailureError(DetectionError, RuntimeError):
    """
    The external inference call failed or produced no output.
    """


class CoordinateSpaceError(DetectionError, TypeError):
    """
    Boxes from different coordinate spaces were combined or mapped.
    """
