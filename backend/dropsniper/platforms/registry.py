"""Registry binding each Platform tag to one capability. Built once at startup."""
import logging

from dropsniper.config import Settings
from dropsniper.core.errors import ConfigurationError, UnknownPlatformError
from dropsniper.platforms.base import PlatformCapability
from dropsniper.platforms.types import Platform

logger = logging.getLogger(__name__)


class PlatformRegistry:
    def __init__(self) -> None:
        self._capabilities: dict[Platform, PlatformCapability] = {}

    def register(self, capability: PlatformCapability) -> None:
        """Register a capability under its platform tag. Unknown tags are rejected here, not at call time."""
        platform = getattr(capability, "platform", None)
        if not isinstance(platform, Platform):
            raise UnknownPlatformError(f"Capability {capability!r} has no valid platform tag: {platform!r}")
        if platform in self._capabilities:
            logger.info("Replacing capability for %s", platform.value)
        self._capabilities[platform] = capability
        logger.info("Registered platform capability: %s", platform.value)

    def get(self, platform: Platform | str) -> PlatformCapability:
        """Capability for a platform. Raises ConfigurationError if none is registered."""
        key = Platform.parse(platform)
        if key not in self._capabilities:
            raise ConfigurationError(
                f"No capability registered for {key.value}. Available: {[p.value for p in self._capabilities]}"
            )
        return self._capabilities[key]

    def platforms(self) -> list[Platform]:
        return list(self._capabilities)

    def __contains__(self, platform: object) -> bool:
        return platform in self._capabilities


def build_default_registry(settings: Settings, browser_session=None) -> PlatformRegistry:
    """Register the built-in capabilities. Tock shares `browser_session` (created if not given)."""
    from dropsniper.platforms.browser import BrowserSession
    from dropsniper.platforms.opentable import OpenTableCapability
    from dropsniper.platforms.resy import ResyCapability
    from dropsniper.platforms.sevenrooms import SevenRoomsCapability
    from dropsniper.platforms.tock import TockCapability

    if browser_session is None:
        browser_session = BrowserSession(
            headless=settings.tock_headless,
            timeout_seconds=settings.platform_timeout_seconds,
        )
    registry = PlatformRegistry()
    registry.register(ResyCapability.from_settings(settings))
    registry.register(OpenTableCapability.from_settings(settings))
    registry.register(SevenRoomsCapability.from_settings(settings))
    registry.register(TockCapability.from_settings(settings, browser_session))
    return registry
