"""
Counter binding: a self-renewing handle to one counter instance.

A CounterBinding owns at most one live handle at any time and moves through
three states:

- UNBOUND: no handle held yet.
- BOUND: a live handle to (category, counter, concrete instance).
- DISPOSED: the handle was released, explicitly or because the subsystem
  reported it invalid; the next sample attempts a renewal.
"""

import logging
from typing import Optional

from ..models.targets import BindingState
from ..validation import CounterError, CounterInvalidError, ResolutionError
from .base import AbstractCounterHandle, AbstractCounterProvider
from .resolver import InstanceResolver

logger = logging.getLogger(__name__)


class CounterBinding:
    """
    Binds a (category, counter, specifier) triple to a live counter handle.

    Attributes:
        category: Counter category name.
        counter: Counter name.
        specifier: Instance specifier, re-resolved on every renewal.
        instance_name: Concrete instance bound by the latest successful open.
    """

    def __init__(
        self,
        category: str,
        counter: str,
        specifier: str,
        provider: AbstractCounterProvider,
        resolver: InstanceResolver,
    ):
        self.category = category
        self.counter = counter
        self.specifier = specifier
        self.provider = provider
        self.resolver = resolver
        self.instance_name: Optional[str] = None
        self._handle: Optional[AbstractCounterHandle] = None
        self._state = BindingState.UNBOUND
        self._renewal_failing = False

    @property
    def state(self) -> BindingState:
        # A handle closed by the subsystem disposes the binding.
        if self._state is BindingState.BOUND and (self._handle is None or self._handle.closed):
            self._release()
        return self._state

    def open(self) -> None:
        """
        Resolve the specifier, open a handle and discard its baseline read.

        Any handle held before is released first. On failure no handle is
        left open and the binding is DISPOSED.

        Raises:
            ResolutionError: If no instance resolves, the subsystem refuses
                             the handle, or the baseline read fails.
        """
        self._release()

        instance = self.resolver.resolve(self.category, self.specifier)
        if instance is None:
            raise ResolutionError(
                "No counter instance could be resolved", self.category, self.counter, self.specifier
            )

        try:
            handle = self.provider.open(self.category, self.counter, instance)
        except CounterError as e:
            raise ResolutionError(str(e), self.category, self.counter, self.specifier) from e

        try:
            # The first read after opening is a meaningless baseline.
            handle.next_value()
        except CounterError as e:
            handle.close()
            raise ResolutionError(
                f"Baseline read failed: {e}", self.category, self.counter, self.specifier
            ) from e
        except BaseException:
            handle.close()
            raise

        self._handle = handle
        self.instance_name = instance
        self._state = BindingState.BOUND
        logger.debug(f"Bound {self.category}/{self.counter} to instance '{instance}'")

    def sample(self) -> Optional[float]:
        """
        Read the next value of the bound counter.

        Returns:
            The raw counter value, or None when the binding is not usable.
            A call that finds the binding stale attempts a renewal and still
            returns None, so a freshly renewed handle never reports in the
            same call.
        """
        if self.state is not BindingState.BOUND:
            self.renew()
            return None

        try:
            return self._handle.next_value()
        except CounterInvalidError as e:
            logger.info(
                f"Counter {self.category}/{self.counter} instance '{self.instance_name}' became invalid: {e}"
            )
            self._release()
            self.renew()
            return None
        except CounterError as e:
            logger.warning(
                f"Failed to read {self.category}/{self.counter} instance '{self.instance_name}': {e}"
            )
            return None

    def renew(self) -> bool:
        """
        Re-resolve and reopen the handle.

        The first failure after a success is logged at WARNING with the
        category, counter and specifier; repeats of it only at DEBUG.

        Returns:
            True if the binding is BOUND afterwards.
        """
        try:
            self.open()
        except ResolutionError as e:
            if self._renewal_failing:
                logger.debug(f"Renewal failed: {e}")
            else:
                logger.warning(f"Unable to bind counter: {e}")
                self._renewal_failing = True
            return False
        self._renewal_failing = False
        logger.info(
            f"Renewed {self.category}/{self.counter} on instance '{self.instance_name}'"
        )
        return True

    def close(self) -> None:
        """Release the handle. Safe to call more than once."""
        self._release()

    def _release(self) -> None:
        if self._handle is not None:
            try:
                self._handle.close()
            finally:
                self._handle = None
        self.instance_name = None
        self._state = BindingState.DISPOSED

    def __enter__(self) -> "CounterBinding":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"CounterBinding(category={self.category!r}, counter={self.counter!r}, "
            f"specifier={self.specifier!r}, instance={self.instance_name!r}, state={self._state.value})"
        )
