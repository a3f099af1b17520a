"""Business modules of the arena server.

Which modules run is configured with ``ARENA_MODULES``; see ``parse_modules``.
"""

from loguru import logger

from arena_server.constants import ALL_MODULES
from arena_server.context import AppContext
from arena_server.modules import Module

from .ai import AiModule
from .analytics import AnalyticsModule
from .chat import ChatModule
from .iam import IamModule
from .matches import MatchesModule
from .notifications import NotificationsModule
from .teams import TeamsModule
from .tournaments import TournamentsModule
from .users import UsersModule
from .venues import VenuesModule

MODULE_CLASSES: dict[str, type[Module]] = {
    module_class.name: module_class
    for module_class in (
        IamModule,
        UsersModule,
        VenuesModule,
        TeamsModule,
        MatchesModule,
        TournamentsModule,
        ChatModule,
        NotificationsModule,
        AnalyticsModule,
        AiModule,
    )
}


def parse_modules(config: str | None) -> list[str]:
    """Parse the enabled-modules configuration.

    Args:
        config: Comma-separated module names (case-insensitive), None, or empty string.
               None or empty string enables all modules.

    Returns:
        Enabled module names in canonical order

    Raises:
        ValueError: If an unknown module name is provided

    Examples:
        >>> parse_modules(None)[:3]
        ['iam', 'users', 'venues']
        >>> parse_modules("Users, IAM")
        ['iam', 'users']
    """
    if not config or not config.strip():
        return list(ALL_MODULES)

    requested = {name.strip().lower() for name in config.split(",") if name.strip()}

    invalid = requested - set(MODULE_CLASSES)
    if invalid:
        raise ValueError(f"Invalid module names: {sorted(invalid)}. Valid: {', '.join(ALL_MODULES)}")

    return [name for name in ALL_MODULES if name in requested]


def register_domain_modules(context: AppContext, names: list[str] | None = None) -> list[Module]:
    """Instantiate the named modules and register them with the context's registry.

    Args:
        context: Application context
        names: Module names; defaults to every module

    Returns:
        The registered module instances
    """
    names = list(ALL_MODULES) if names is None else names
    modules = []
    for name in names:
        module = MODULE_CLASSES[name](context)
        context.modules.register(module)
        modules.append(module)
    logger.info(f"Registered {len(modules)} modules: {', '.join(names)}")
    return modules


__all__ = [
    "MODULE_CLASSES",
    "AiModule",
    "AnalyticsModule",
    "ChatModule",
    "IamModule",
    "MatchesModule",
    "NotificationsModule",
    "TeamsModule",
    "TournamentsModule",
    "UsersModule",
    "VenuesModule",
    "parse_modules",
    "register_domain_modules",
]
