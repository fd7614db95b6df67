"""FastAPI dependencies for dependency injection.

Each service is built once in the application lifespan and registered here
with its init_* function; routes receive it through the *Dep aliases.
"""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003
from typing import Annotated

from fastapi import Depends

from cfroster.analytics import StudentAnalytics
from cfroster.notifications import InactivityNotifier, NotificationDispatcher
from cfroster.scheduler import SyncScheduler
from cfroster.state_store import StateStore
from cfroster.synchronizer import BatchSynchronizer

# Global StateStore instance (initialized on app startup)
_state_store: StateStore | None = None


def init_state_store(db_path: str = "cfroster.db") -> StateStore:
    """Initialize the global StateStore instance."""
    global _state_store  # noqa: PLW0603
    _state_store = StateStore(db_path)
    return _state_store


def close_state_store() -> None:
    """Close the global StateStore instance."""
    global _state_store  # noqa: PLW0603
    if _state_store is not None:
        _state_store.close()
        _state_store = None


def get_state_store() -> Generator[StateStore, None, None]:
    """Dependency that provides the StateStore instance."""
    if _state_store is None:
        raise RuntimeError("StateStore not initialized. Call init_state_store() first.")
    yield _state_store


StateStoreDep = Annotated[StateStore, Depends(get_state_store)]

# Global BatchSynchronizer instance
_synchronizer: BatchSynchronizer | None = None


def init_synchronizer(synchronizer: BatchSynchronizer) -> None:
    """Initialize the global BatchSynchronizer instance."""
    global _synchronizer  # noqa: PLW0603
    _synchronizer = synchronizer


def close_synchronizer() -> None:
    """Close the global BatchSynchronizer and its Codeforces client."""
    global _synchronizer  # noqa: PLW0603
    if _synchronizer is not None:
        _synchronizer.client.close()
        _synchronizer = None


def get_synchronizer() -> Generator[BatchSynchronizer, None, None]:
    """Dependency that provides the BatchSynchronizer instance."""
    if _synchronizer is None:
        raise RuntimeError("Synchronizer not initialized. Call init_synchronizer() first.")
    yield _synchronizer


SynchronizerDep = Annotated[BatchSynchronizer, Depends(get_synchronizer)]

# Global SyncScheduler instance
_scheduler: SyncScheduler | None = None


def init_scheduler(scheduler: SyncScheduler) -> None:
    """Initialize the global SyncScheduler instance."""
    global _scheduler  # noqa: PLW0603
    _scheduler = scheduler


def close_scheduler() -> None:
    """Stop and drop the global SyncScheduler instance."""
    global _scheduler  # noqa: PLW0603
    if _scheduler is not None:
        _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Generator[SyncScheduler, None, None]:
    """Dependency that provides the SyncScheduler instance."""
    if _scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")
    yield _scheduler


SchedulerDep = Annotated[SyncScheduler, Depends(get_scheduler)]

# Global notification services
_dispatcher: NotificationDispatcher | None = None
_inactivity_notifier: InactivityNotifier | None = None


def init_notifications(
    dispatcher: NotificationDispatcher, inactivity_notifier: InactivityNotifier
) -> None:
    """Initialize the global dispatcher and inactivity notifier."""
    global _dispatcher, _inactivity_notifier  # noqa: PLW0603
    _dispatcher = dispatcher
    _inactivity_notifier = inactivity_notifier


def close_notifications() -> None:
    """Drop the global notification services."""
    global _dispatcher, _inactivity_notifier  # noqa: PLW0603
    _dispatcher = None
    _inactivity_notifier = None


def get_dispatcher() -> Generator[NotificationDispatcher, None, None]:
    """Dependency that provides the NotificationDispatcher instance."""
    if _dispatcher is None:
        raise RuntimeError("Dispatcher not initialized. Call init_notifications() first.")
    yield _dispatcher


def get_inactivity_notifier() -> Generator[InactivityNotifier, None, None]:
    """Dependency that provides the InactivityNotifier instance."""
    if _inactivity_notifier is None:
        raise RuntimeError("Inactivity notifier not initialized. Call init_notifications() first.")
    yield _inactivity_notifier


DispatcherDep = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
InactivityNotifierDep = Annotated[InactivityNotifier, Depends(get_inactivity_notifier)]

# Global StudentAnalytics instance
_analytics: StudentAnalytics | None = None


def init_analytics(analytics: StudentAnalytics) -> None:
    """Initialize the global StudentAnalytics instance."""
    global _analytics  # noqa: PLW0603
    _analytics = analytics


def close_analytics() -> None:
    """Drop the global StudentAnalytics instance."""
    global _analytics  # noqa: PLW0603
    _analytics = None


def get_analytics() -> Generator[StudentAnalytics, None, None]:
    """Dependency that provides the StudentAnalytics instance."""
    if _analytics is None:
        raise RuntimeError("Analytics not initialized. Call init_analytics() first.")
    yield _analytics


AnalyticsDep = Annotated[StudentAnalytics, Depends(get_analytics)]
