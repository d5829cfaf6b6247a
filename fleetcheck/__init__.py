"""fleetcheck: checklist periodicity compliance and non-conformity analytics."""

__version__ = "1.0.0"
