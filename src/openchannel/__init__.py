"""
openchannel: steady gradually-varied flow in open channels.

The names most callers need are exported here:

    from openchannel import ChannelReach, ChannelSystem, NetworkRouter, Trapezoidal
"""
from .boundary import ControlKind, DownstreamControl, UpstreamControl
from .channel import ChannelReach, StationSection, TransitionPolicy
from .cross_section import (Berm, Circular, Compound, CrossSection, Irregular, Parabolic, Rectangular,
                            Trapezoidal, Triangular, UShaped)
from .curves import (CharacteristicCurve, discharge_curve, specific_energy_curve, specific_force_curve,
                     structure_rating_curve)
from .exceptions import (Cancelled, CriticalDepthCrossing, DryBed, HydraulicError, InvalidGeometry,
                         JunctionUnbalanced, NoConvergence, NotFullyDefined, OutOfRange, OverDetermined,
                         SubCriticalSlopeRequired, UnderDetermined)
from .flow import (FlowRegime, FlowResult, SlopeClass, alternate_depth, capacity_check, classify_slope,
                   conjugate_depth, critical_depth, critical_slope, flow_state, froude_number,
                   normal_depth, specific_energy, specific_force)
from .gvf import ProfilePoint, StandardStepSolver
from .jump import JumpLocation, JumpOutcome, JumpType
from .network import ChannelSystem, NetworkRouter, ProfileSummary, Tributary, WaterSurfaceProfile
from .optimization import ChannelOptimizer, DesignConstraints, Objective, SectionFamily, best_hydraulic_trapezoid
from .rating_curve import RatingCurve
from .sediment import SedimentProperties, TransportFormula, analyze_profile_sediments, analyze_sediment
from .settings import GvfConfig
from .structures import (BrinkDepthPolicy, Chute, Drop, DropType, FreeOverfall, Gate, GateType, Junction,
                         StillingBasinDesign, Weir, WeirType, design_stilling_basin)

__version__ = '0.1.0'

__all__ = [
    'ControlKind', 'DownstreamControl', 'UpstreamControl',
    'ChannelReach', 'StationSection', 'TransitionPolicy',
    'Berm', 'Circular', 'Compound', 'CrossSection', 'Irregular', 'Parabolic', 'Rectangular',
    'Trapezoidal', 'Triangular', 'UShaped',
    'CharacteristicCurve', 'discharge_curve', 'specific_energy_curve', 'specific_force_curve',
    'structure_rating_curve',
    'Cancelled', 'CriticalDepthCrossing', 'DryBed', 'HydraulicError', 'InvalidGeometry',
    'JunctionUnbalanced', 'NoConvergence', 'NotFullyDefined', 'OutOfRange', 'OverDetermined',
    'SubCriticalSlopeRequired', 'UnderDetermined',
    'FlowRegime', 'FlowResult', 'SlopeClass', 'alternate_depth', 'capacity_check', 'classify_slope',
    'conjugate_depth', 'critical_depth', 'critical_slope', 'flow_state', 'froude_number',
    'normal_depth', 'specific_energy', 'specific_force',
    'ProfilePoint', 'StandardStepSolver',
    'JumpLocation', 'JumpOutcome', 'JumpType',
    'ChannelSystem', 'NetworkRouter', 'ProfileSummary', 'Tributary', 'WaterSurfaceProfile',
    'ChannelOptimizer', 'DesignConstraints', 'Objective', 'SectionFamily', 'best_hydraulic_trapezoid',
    'RatingCurve',
    'SedimentProperties', 'TransportFormula', 'analyze_profile_sediments', 'analyze_sediment',
    'GvfConfig',
    'BrinkDepthPolicy', 'Chute', 'Drop', 'DropType', 'FreeOverfall', 'Gate', 'GateType', 'Junction',
    'StillingBasinDesign', 'Weir', 'WeirType', 'design_stilling_basin',
]
