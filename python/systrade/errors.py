"""Exceptions raised by the simulation and its collaborators."""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for failures that abort a simulation run."""


class InsufficientDataError(ValueError):
    """Fewer price bars than an indicator needs."""


class ConfigurationError(ValueError):
    """The configuration graph cannot be built or run."""


class InsufficientFundsError(SimulationError):
    """A debit larger than the available cash balance."""


class InsufficientEquitiesError(SimulationError):
    """A sell larger than the equity balance held."""


class UnsupportedEquityClassError(SimulationError):
    """The fee structure has no pricing for the equity class."""


class OrderError(SimulationError):
    """An order could not be executed."""
