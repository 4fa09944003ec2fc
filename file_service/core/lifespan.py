"""Lifespan management with event-based architecture for robyn-file-service."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import Any, Generic, TypeVar

from robyn import Robyn

from file_service.core.logger import LogIcon, logger
from file_service.core.settings import settings as st

AsyncHandler = Callable[[], Coroutine[Any, Any, None]]


class State:
    """Application state shared with handlers as `global_dependencies["state"]`.

    Each started event is stored under its name, e.g. `state.storage`.
    """

    __slots__ = ("_data",)

    def __init__(self) -> None:
        object.__setattr__(self, "_data", {})

    def __getattr__(self, name: str) -> Any:
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(f"State has no attribute '{name}'") from None

    def __setattr__(self, name: str, value: Any) -> None:
        self._data[name] = value

    def __contains__(self, name: str) -> bool:
        return name in self._data

    def clear(self) -> None:
        self._data.clear()


T = TypeVar("T")


class BaseEvent(ABC, Generic[T]):
    """Abstract base class for lifespan events."""

    name: str
    state: State

    @abstractmethod
    async def startup(self) -> T:
        """Initialize and return the event instance."""
        ...

    async def shutdown(self, instance: T) -> None:  # noqa: B027
        """Optional cleanup. Override if cleanup is needed."""

    @classmethod
    def has_shutdown(cls) -> bool:
        """Check if shutdown was overridden."""
        return cls.shutdown is not BaseEvent.shutdown


class Lifespan:
    """Manages application lifespan with event registration.

    Events start in registration order and shut down in reverse order. If an
    event fails to start, the events already started are shut down before the
    error propagates.
    """

    def __init__(self, app: Robyn) -> None:
        self._app = app
        self._event_classes: list[type[BaseEvent[Any]]] = []
        self._events: list[BaseEvent[Any]] = []
        self._state: State | None = None

    def register(self, event_cls: type[BaseEvent[Any]]) -> "Lifespan":
        """Register an event class. Returns self for chaining."""
        self._event_classes.append(event_cls)
        return self

    @property
    def state(self) -> State | None:
        """Access to state after startup execution."""
        return self._state

    @property
    def events(self) -> list[BaseEvent[Any]]:
        """Access to instantiated events after startup."""
        return self._events

    async def _start_event(self, event_cls: type[BaseEvent[Any]]) -> None:
        event = event_cls()
        event.state = self._state

        logger.info(f"Starting event: {event.name}", icon=LogIcon.PROCESSING)
        instance = await event.startup()
        setattr(self._state, event.name, instance)
        logger.info(f"Event ready: {event.name}", icon=LogIcon.SUCCESS)

        self._events.append(event)

    async def _stop_events(self) -> None:
        for event in reversed(self._events):
            if event.has_shutdown() and event.name in self._state:
                logger.info(f"Shutting down: {event.name}", icon=LogIcon.PROCESSING)
                await event.shutdown(getattr(self._state, event.name))
                logger.info(f"Shutdown complete: {event.name}", icon=LogIcon.SUCCESS)
        self._events.clear()

    @property
    def startup(self) -> AsyncHandler:
        """Return async startup handler function."""

        async def _startup() -> None:
            logger.info("Starting application lifespan", icon=LogIcon.START, version=st.API_VERSION)
            self._state = State()

            for event_cls in self._event_classes:
                try:
                    await self._start_event(event_cls)
                except Exception:
                    logger.error(f"Event failed to start: {event_cls.__name__}", icon=LogIcon.ERROR)
                    await self._stop_events()
                    raise

            self._app.inject_global(state=self._state)
            logger.info("App state ready", icon=LogIcon.COMPLETE)

        return _startup

    @property
    def shutdown(self) -> AsyncHandler:
        """Return async shutdown handler function."""

        async def _shutdown() -> None:
            logger.info("Cleaning up app state", icon=LogIcon.TOOL)

            if not self._state:
                logger.info("No state to cleanup", icon=LogIcon.WARNING)
                return

            await self._stop_events()
            self._state.clear()
            logger.info("Cleanup complete", icon=LogIcon.COMPLETE)

        return _shutdown


def create_lifespan(app: Robyn) -> Lifespan:
    """Create lifespan manager for event registration."""
    return Lifespan(app)
