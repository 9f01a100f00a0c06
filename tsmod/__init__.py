"""Time-stepped, component-based modeling on top of `SimPy`__.

__ https://simpy.readthedocs.io/en/latest/contents.html

The `tsmod` package provides tools for declaring, building, and running
models composed of components that advance together over a common axis of
calendar periods, e.g. the years 2000 through 2100.

Components
==========

A component schema is a :class:`~tsmod.component.ComponentDef`: a set of
named dimensions, parameters (inputs), variables (outputs), and a
``run_timestep(p, v, d, t)`` routine called once for each period the
component covers. Schemas are collected in a
:class:`~tsmod.registry.ComponentRegistry`; :func:`tsmod.registry.defcomp`
creates and registers a schema in the default registry.

Time series data are held in :mod:`~tsmod.timeseries` containers indexed by
period or by :class:`~tsmod.timestep.Timestep`.

Models
======

A :class:`~tsmod.model.Model` declares the model's dimensions, the
components it is made of, and the connections feeding each component's
parameters, either from another component's variable or from an external
parameter value. Building the model (see :mod:`tsmod.build`) verifies the
declarations, binds every datum to storage, and fixes the execution order.
Where a connection's source covers fewer periods than its destination, a
connector component fills the gap from backup data.

Configuration
=============

A single configuration dictionary with dot-separated keys (e.g.
"sim.log.level") controls each run. The :mod:`tsmod.config` module provides
functionality for applying user settings to a configuration dictionary.

Simulation
==========

:func:`~tsmod.simulation.simulate` runs a built model in a
:class:`~tsmod.simulation.SimEnvironment` whose clock counts periods.
Components run in execution order, each through all of its periods before
the next one starts.
The run's outcome is captured in a result dictionary which, like the
configuration, may be written to a file in the run's workspace.

Monitoring
==========

The run loop reports progress through the trace functions of
:class:`~tsmod.tracer.TraceManager`; enabling the log tracer with
``sim.log.enable`` writes them to ``sim.log.file``.

"""

__all__ = ()
