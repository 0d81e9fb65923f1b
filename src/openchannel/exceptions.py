class HydraulicError(Exception):
    """Base class of every failure raised by the hydraulics core.

    Errors carry where they happened (reach, element, station) and a one-line
    remediation so that a caller can show the user what to fix. The network
    router fills in the reach or element id on the way out.
    """
    remediation = None

    def __init__(self, message: str, reach_id: str = None, element_id: str = None,
                 station: float = None, remediation: str = None):
        super().__init__(message)
        self.message = message
        self.reach_id = reach_id
        self.element_id = element_id
        self.station = station
        if remediation is not None:
            self.remediation = remediation

    def annotate(self, reach_id: str = None, element_id: str = None):
        """Attach a location without overwriting a more specific one."""
        if self.reach_id is None and reach_id is not None:
            self.reach_id = reach_id
        if self.element_id is None and element_id is not None:
            self.element_id = element_id
        return self

    def __str__(self):
        parts = [self.message]
        where = []
        if self.reach_id is not None:
            where.append(f"reach '{self.reach_id}'")
        if self.element_id is not None:
            where.append(f"element '{self.element_id}'")
        if self.station is not None:
            where.append(f"station {self.station:.3f}")
        if where:
            parts.append("at " + ", ".join(where))
        text = " ".join(parts)
        if self.remediation:
            text += f" ({self.remediation})"
        return text


class InvalidGeometry(HydraulicError, ValueError):
    remediation = "check the section dimensions and the depth range"


class NotFullyDefined(InvalidGeometry):
    remediation = "complete or correct the section definition"


class NoConvergence(HydraulicError):
    remediation = "refine the stations or relax the tolerance"

    def __init__(self, context: str, iterations: int, **kwargs):
        super().__init__(f"{context} did not converge after {iterations} iterations", **kwargs)
        self.context = context
        self.iterations = iterations


class SubCriticalSlopeRequired(HydraulicError, ValueError):
    remediation = "slope must be positive for normal depth"


class CriticalDepthCrossing(HydraulicError):
    """A step would pass through critical depth in the wrong regime.

    ``partial`` holds the profile points computed before the crossing, in
    station order.
    """
    remediation = "a hydraulic jump or a control is needed here"

    def __init__(self, message: str, partial=(), **kwargs):
        super().__init__(message, **kwargs)
        self.partial = tuple(partial)


class DryBed(HydraulicError):
    remediation = "increase the discharge or check the bed elevations"


class UnderDetermined(HydraulicError):
    remediation = "add a downstream control"


class OverDetermined(HydraulicError):
    remediation = "remove one of the conflicting controls"


class JunctionUnbalanced(HydraulicError):
    remediation = "make the junction outflow equal the sum of its inflows"


class OutOfRange(HydraulicError, ValueError):
    remediation = "keep the input within the valid range of the model"


class Cancelled(HydraulicError):
    remediation = None

    def __init__(self, message: str = "computation cancelled", **kwargs):
        super().__init__(message, **kwargs)
