from typing import Callable

from loguru import logger

from app.core.events import SESSION_LOGGED_OUT, EventBus


def log_logged_out(user_id: int) -> None:
    logger.info('session.logged_out (userId: {})', user_id)


def register_session_listeners(bus: EventBus) -> Callable[[], None]:
    """Subscribe the audit listeners; returns a callable that removes them."""
    bus.subscribe(SESSION_LOGGED_OUT, log_logged_out)

    def unsubscribe() -> None:
        bus.unsubscribe(SESSION_LOGGED_OUT, log_logged_out)

    return unsubscribe
