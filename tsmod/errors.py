"""Exceptions raised while declaring, building, and running models.

Declaration errors (:class:`DuplicateNameError`, :class:`UnknownReferenceError`)
are raised by the call that caused them. Build errors derive from
:class:`BuildError` and abort :func:`tsmod.build.build` without producing a
:class:`~tsmod.instance.ModelInstance`. Run errors derive from
:class:`RunError`.

"""


class ModelError(Exception):
    """Base class for all tsmod errors."""


class DuplicateNameError(ModelError):
    """A dimension, datum, or component name is already in use."""


class UnknownReferenceError(ModelError):
    """A component, datum, or external parameter name does not exist."""


class OutOfRangeError(ModelError, IndexError):
    """A timestep or container access falls outside its covered periods."""


class BuildError(ModelError):
    """The model definition could not be compiled into an instance."""


class UnresolvedReferenceError(BuildError, UnknownReferenceError):
    """A connection names a datum or external parameter that does not exist."""


class MissingBackupError(BuildError):
    """A connection's source cannot cover the destination's periods."""

    def __init__(self, conn, src_range, dst_range):
        super().__init__(
            f'{conn.src_comp_name}.{conn.src_var_name} covers '
            f'{src_range[0]}-{src_range[1]} but '
            f'{conn.dst_comp_name}.{conn.dst_par_name} needs '
            f'{dst_range[0]}-{dst_range[1]}; no backup data supplied'
        )
        self.conn = conn


class UnboundParameterError(BuildError):
    """One or more parameters have neither an internal nor external source."""

    def __init__(self, unbound):
        #: List of ``(comp_name, param_name)`` pairs.
        self.unbound = list(unbound)
        names = ', '.join(f'{comp}.{par}' for comp, par in self.unbound)
        super().__init__(f'unbound parameters: {names}')


class UnitMismatchError(BuildError):
    """A connection joins datums with incompatible units."""


class RunError(ModelError):
    """The model could not be run to completion."""


class NotBuiltError(RunError):
    """There is no current instance to run."""


class EmptyModelError(RunError):
    """The model has no components."""


class NotRunError(RunError):
    """Results were requested from a model that has not completed a run."""


class ComponentRunError(RunError):
    """A component's run routine failed.

    The original exception is kept as `cause` (and chained as `__cause__`
    when raised from it).

    """

    def __init__(self, comp_name, period, cause=None):
        super().__init__(comp_name, period, cause)
        self.comp_name = comp_name
        self.period = period
        self.cause = cause

    def __str__(self):
        return (
            f'component {self.comp_name} failed in period {self.period}: '
            f'{self.cause!r}'
        )
