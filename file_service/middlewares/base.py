"""Base middleware architecture for Robyn applications."""

from collections.abc import Callable

from robyn import Request, Response, Robyn

from file_service.core.logger import LogIcon, logger


class BaseMiddleware:
    """Base class for middlewares with before/after hooks. Subclasses override at least one.

    An empty `endpoints` set applies the middleware to every route known
    when it is registered.
    """

    endpoints: frozenset[str] = frozenset()

    def __init__(self, endpoints: frozenset[str] | list[str] | None = None) -> None:
        if endpoints is not None:
            self.endpoints = frozenset(endpoints)

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        if cls.before is BaseMiddleware.before and cls.after is BaseMiddleware.after:
            raise TypeError(f"{cls.__name__} must implement at least one of before/after")

    def before(self, request: Request) -> Request | Response:
        """Called before request handling. Return Request to continue or Response to short-circuit."""
        return request

    def after(self, response: Response) -> Response:
        """Called after request handling. Return modified Response."""
        return response

    @property
    def has_before(self) -> bool:
        return type(self).before is not BaseMiddleware.before

    @property
    def has_after(self) -> bool:
        return type(self).after is not BaseMiddleware.after


class MiddlewareHandler:
    """Manages middleware registration for a Robyn application."""

    def __init__(self, app: Robyn) -> None:
        self._app = app
        self._middlewares: list[BaseMiddleware] = []

    @property
    def middlewares(self) -> list[BaseMiddleware]:
        return self._middlewares

    def register(self, middleware: BaseMiddleware | type[BaseMiddleware]) -> "MiddlewareHandler":
        """Register a middleware instance or class. Returns self for chaining."""
        if isinstance(middleware, type):
            middleware = middleware()
        self._middlewares.append(middleware)
        self._apply_middleware(middleware)
        logger.info(f"Registered middleware: {middleware.__class__.__name__}", icon=LogIcon.ADAPTER)
        return self

    def _apply_middleware(self, middleware: BaseMiddleware) -> None:
        """Apply middleware to endpoints."""
        endpoints = middleware.endpoints or self._get_all_routes()

        for endpoint in endpoints:
            if middleware.has_before:
                self._register_before(endpoint, middleware.before)
            if middleware.has_after:
                self._register_after(endpoint, middleware.after)

    def _get_all_routes(self) -> frozenset[str]:
        """Get all registered routes from the app."""
        routes = self._app.get_all_routes()
        return frozenset(route[1] for route in routes)

    def _register_before(self, endpoint: str, handler: Callable) -> None:
        """Register a before_request handler for an endpoint."""
        @self._app.before_request(endpoint)
        async def before_wrapper(request: Request) -> Request | Response:
            return handler(request)

    def _register_after(self, endpoint: str, handler: Callable) -> None:
        """Register an after_request handler for an endpoint."""
        @self._app.after_request(endpoint)
        def after_wrapper(response: Response) -> Response:
            return handler(response)
