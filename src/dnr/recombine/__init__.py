"""Divide-and-recombine stages: partition, recombine, prepare panels."""

from dnr.recombine.partitioner import Partitioner, Partitioning
from dnr.recombine.recombiner import Recombiner, aggregate_frame
from dnr.recombine.panels import (
    IncompletePanel,
    PanelGroup,
    PanelPreparer,
    PanelSet,
    PanelState,
)

__all__ = [
    'Partitioner',
    'Partitioning',
    'Recombiner',
    'aggregate_frame',
    'PanelPreparer',
    'PanelSet',
    'PanelGroup',
    'PanelState',
    'IncompletePanel',
]
