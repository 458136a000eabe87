"""
Shared chain builders for the CCD-IK tests.
"""

import numpy as np
import pytest

from ccdik_solver.model import ChainLink, find_zero_length_children
from ccdik_solver.utils import Transform


def make_chain(positions, rotations=None):
    """
    Build a consistent chain from component-space joint positions.

    The root's external parent is the identity, so its local transform
    equals its component transform.
    """
    positions = [np.asarray(p, dtype=np.float64) for p in positions]
    components = []
    for i, position in enumerate(positions):
        rotation = None if rotations is None else rotations[i]
        components.append(Transform(position, rotation))

    chain = []
    for i, component in enumerate(components):
        if i == 0:
            local = component.copy()
        else:
            local = component.relative_to(components[i - 1])
        chain.append(ChainLink(component, local, transform_index=i))

    find_zero_length_children(chain)
    return chain


def make_straight_chain(segment_count, length=1.0, axis=(1.0, 0.0, 0.0)):
    """Chain of ``segment_count`` equal segments, i.e. ``segment_count + 1`` links."""
    axis = np.asarray(axis, dtype=np.float64)
    return make_chain([axis * length * i for i in range(segment_count + 1)])


def snapshot(chain):
    """Copy of every link's component and local transforms."""
    return [(link.component_transform.copy(), link.local_transform.copy()) for link in chain]


@pytest.fixture
def straight_chain():
    return make_straight_chain


@pytest.fixture
def chain_from_positions():
    return make_chain


@pytest.fixture
def chain_snapshot():
    return snapshot
