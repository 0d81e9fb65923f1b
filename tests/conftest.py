import os
import sys

import matplotlib
import pytest

matplotlib.use('Agg')

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from openchannel.boundary import DownstreamControl
from openchannel.channel import ChannelReach
from openchannel.cross_section import Circular, Rectangular, Trapezoidal
from openchannel.network import ChannelSystem


@pytest.fixture
def rectangle():
    return Rectangular(width=5.0, n=0.015)


@pytest.fixture
def trapezoid():
    return Trapezoidal(bottom_width=3.0, side_slope=1.5, n=0.025)


@pytest.fixture
def culvert():
    return Circular(diameter=1.2, n=0.013)


@pytest.fixture
def mild_reach(rectangle):
    return ChannelReach.prismatic('mild', rectangle, length=1000.0, slope=0.001, discharge=10.0)


@pytest.fixture
def backwater_system(mild_reach):
    return ChannelSystem(
        name='backwater',
        items=(mild_reach,),
        downstream_control=DownstreamControl.known_depth(2.0),
    )


@pytest.fixture
def steep_mild_system():
    section = Rectangular(width=3.0, n=0.010)
    steep = ChannelReach.prismatic('steep', section, length=400.0, slope=0.02,
                                   upstream_bed_elevation=8.05, discharge=5.0)
    mild = ChannelReach.prismatic('mild', section, length=100.0, slope=0.0005, start_station=400.0,
                                  upstream_bed_elevation=0.05, discharge=5.0)
    return ChannelSystem(
        name='steep-mild',
        items=(steep, mild),
        downstream_control=DownstreamControl.known_depth(1.15),
    )
