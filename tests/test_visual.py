import matplotlib.pyplot as plt
import pytest

from openchannel.network import NetworkRouter
from openchannel.visual import plot_profile


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


def test_plot_backwater_profile(backwater_system):
    profile = NetworkRouter().run(backwater_system)
    ax = plot_profile(profile)

    labels = [line.get_label() for line in ax.get_lines()]
    assert 'Bed' in labels and 'Water surface' in labels
    assert 'Energy grade' in labels
    assert ax.get_title() == 'backwater'
    assert ax.get_xlabel() == 'Station (m)'


def test_plot_jump_on_given_axes(steep_mild_system):
    profile = NetworkRouter().run(steep_mild_system)
    _, ax = plt.subplots()
    returned = plot_profile(profile, ax=ax, show_energy=False, show_critical=False, title='Chute')

    assert returned is ax
    assert ax.get_title() == 'Chute'
    labels = [line.get_label() for line in ax.get_lines()]
    assert 'Energy grade' not in labels
    assert 'Critical depth' not in labels
    assert len(ax.collections) >= 3
