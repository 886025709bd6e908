"""Exceptions raised by TorchSNE estimators."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License


class UnsupportedConfigurationError(ValueError):
    """A requested configuration needs a capability that is not available.

    Raised before any computation, e.g. when the Barnes-Hut path is asked to
    index the input with a metric the vantage-point tree does not provide.
    """


class CancelledError(RuntimeError):
    """The computation was cancelled before it started."""
