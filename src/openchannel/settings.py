from dataclasses import dataclass

############                Physical Constants                  ############

G = 9.81                        # gravitational acceleration (m/s^2), not overridable
WATER_DENSITY = 1000.0          # kg/m^3
SEDIMENT_DENSITY = 2650.0       # quartz, kg/m^3
KINEMATIC_VISCOSITY = 1.0e-6    # water at 20 C, m^2/s
VON_KARMAN = 0.41

############                Solver Tolerances                   ############

MIN_DEPTH = 1e-4                # the dry-bed threshold (epsilon)
UNBOUNDED_DEPTH = 100.0         # practical maximum depth of open shapes without walls
CIRCULAR_CRITICAL_LIMIT = 0.95  # critical depth search ceiling, fraction of D
CIRCULAR_MAX_CONVEYANCE = 0.938 # depth ratio of maximum Manning discharge in a pipe

CRITICAL_FROUDE_TOLERANCE = 1e-3
ROOT_TOLERANCE = 1e-10
MAX_ITERATIONS = 100

GVF_TOLERANCE = 1e-5
GVF_MAX_ITERATIONS = 50
GVF_STEP = 10.0                 # maximum standard-step length (m)

############                Structures and Network              ############

WEIR_SUBMERGENCE_THRESHOLD = 0.67
BROAD_CRESTED_COEFFICIENT = 1.705   # (2/3)^1.5 * sqrt(g)
OGEE_DESIGN_COEFFICIENT = 2.18
CONTRACTION_COEFFICIENT = 0.611     # sluice gate vena contracta

CONTRACTION_LOSS = 0.1
EXPANSION_LOSS = 0.3

JUNCTION_TOLERANCE = 1e-3       # m^3/s
WSE_TOLERANCE = 0.01            # m
JUMP_LOCATION_TOLERANCE = 1e-3  # m along the reach

############                Design Checks                       ############

MAX_VELOCITY = 3.5              # m/s, concrete lining
MIN_VELOCITY = 0.5              # m/s, below this sediment settles
MIN_FREEBOARD = 0.15            # m

############                Run Configuration                   ############


@dataclass(frozen=True)
class GvfConfig:
    """Knobs of the standard-step integration.

    Attributes:
        step (float): Maximum length of a single step (m). Station intervals
            longer than this are subdivided.
        tolerance (float): Depth tolerance of each step solve (m).
        max_iterations (int): Iteration cap of each step solve.
        min_depth (float): Depths below this are a dry bed.
        contraction_loss (float): Loss coefficient applied to the velocity-head
            change when the flow accelerates through a section change.
        expansion_loss (float): Same, for a decelerating section change.
        wse_tolerance (float): Mismatch allowed between an explicit upstream
            control and the computed subcritical inlet level.
    """
    step: float = GVF_STEP
    tolerance: float = GVF_TOLERANCE
    max_iterations: int = GVF_MAX_ITERATIONS
    min_depth: float = MIN_DEPTH
    contraction_loss: float = CONTRACTION_LOSS
    expansion_loss: float = EXPANSION_LOSS
    wse_tolerance: float = WSE_TOLERANCE

    def __post_init__(self):
        if self.step <= 0:
            raise ValueError("Step length must be positive.")
        if self.tolerance <= 0:
            raise ValueError("Tolerance must be positive.")
        if self.max_iterations < 1:
            raise ValueError("At least one iteration is required.")
