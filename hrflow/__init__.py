"""HR Flow: natural-language HR action dispatcher."""

from hrflow.config import CONFIG, AppConfig, __version__
from hrflow.domain.dispatcher import Dispatcher
from hrflow.domain.models import ActionContext, ActionResult, Actor

__all__ = [
    "CONFIG",
    "AppConfig",
    "__version__",
    "Dispatcher",
    "ActionContext",
    "ActionResult",
    "Actor",
]
