"""
Focused re-acquisition of one selected aircraft.
"""

from planewatch.tracking.reacquisition import ReacquisitionTracker, TrackingState

__all__ = ['ReacquisitionTracker', 'TrackingState']
