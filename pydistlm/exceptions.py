"""
Error taxonomy for distributed training.

Every failure surfaced by ``LinearTrainAlgorithm.train`` is one of these.
"""

from contextlib import contextmanager
import logging

logger = logging.getLogger(__name__)


class LinearTrainError(Exception):
    """Base class for all training failures."""


class ConfigurationError(LinearTrainError, ValueError):
    """Requested columns or options are invalid."""


class ComputationError(LinearTrainError, RuntimeError):
    """Local training or master merge failed."""


class SerializationError(LinearTrainError, RuntimeError):
    """Model could not be serialized or deserialized."""


@contextmanager
def stage(message: str, error_cls=ComputationError):
    """
    Convert any failure inside the block into ``error_cls``.

    Errors that already belong to the taxonomy pass through unchanged,
    so the innermost stage decides the message the caller sees.

    Examples
    --------
    >>> with stage("Could not compute partial results"):
    ...     backend.compute_partial(X, y, True)
    """
    try:
        yield
    except LinearTrainError:
        raise
    except Exception as e:
        logger.debug("%s: %r", message, e)
        raise error_cls(f"{message}: {e}") from e
