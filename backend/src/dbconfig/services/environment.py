"""Post-reload hooks that apply well-known settings to the process environment.

Hooks run in order on the draft configuration after every registry reload and
before the new snapshot is published. They may adjust the draft (cache
durations, derived base URL) and apply process-level state (timezone, locale).
"""

import codecs
import locale
import os
import time
from collections.abc import Callable, Mapping
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.config import Settings
from ..core.logging import get_logger
from ..utils.path_access import DotPath

logger = get_logger(__name__)

ReloadHook = Callable[[dict[str, Any]], None]

DEBUG_CACHE_DURATION = "+2 minutes"
DEBUG_CACHE_KEYS = ("Cache._model_.duration", "Cache._translations_.duration")

_FALSY_HTTPS = frozenset({"", "off", "0", "false"})


def apply_debug_cache_durations(config: dict[str, Any]) -> None:
    """Shorten metadata cache lifetimes while debug mode is on."""
    if not DotPath.get(config, "debug"):
        return
    for key in DEBUG_CACHE_KEYS:
        DotPath.set(config, key, DEBUG_CACHE_DURATION)


def apply_timezone(config: dict[str, Any]) -> None:
    """Make App.defaultTimezone the process timezone."""
    tz_name = DotPath.get(config, "App.defaultTimezone")
    if not tz_name:
        return
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        logger.warning(f"Ignoring unknown timezone '{tz_name}' from App.defaultTimezone")
        return

    os.environ["TZ"] = tz_name
    if hasattr(time, "tzset"):
        time.tzset()


def apply_encoding(config: dict[str, Any]) -> None:
    """Drop App.encoding when Python has no codec for it."""
    encoding = DotPath.get(config, "App.encoding")
    if not encoding:
        return
    try:
        codecs.lookup(encoding)
    except (LookupError, TypeError):
        logger.warning(f"Ignoring unknown encoding '{encoding}' from App.encoding")
        DotPath.set(config, "App.encoding", None)


def apply_locale(config: dict[str, Any]) -> None:
    """Set the process locale from App.defaultLocale."""
    locale_name = DotPath.get(config, "App.defaultLocale")
    if not locale_name:
        return
    try:
        locale.setlocale(locale.LC_ALL, locale_name)
    except (locale.Error, ValueError, TypeError):
        logger.warning(f"Locale '{locale_name}' from App.defaultLocale is not available on this host")


class BaseUrlHook:
    """Derive App.fullBaseUrl from the server environment when it is not configured.

    Behind a TLS-terminating proxy the scheme is only taken from
    X-Forwarded-Proto when ``trust_proxy`` is enabled.
    """

    def __init__(self, trust_proxy: bool = False, environ: Mapping[str, str] | None = None) -> None:
        self.trust_proxy = trust_proxy
        self._environ = environ

    def __call__(self, config: dict[str, Any]) -> None:
        if DotPath.get(config, "App.fullBaseUrl"):
            return

        env = self._environ if self._environ is not None else os.environ
        https = str(env.get("HTTPS", "")).strip().lower() not in _FALSY_HTTPS
        if not https and self.trust_proxy:
            https = env.get("HTTP_X_FORWARDED_PROTO") == "https"

        host = env.get("HTTP_HOST")
        if host:
            DotPath.set(config, "App.fullBaseUrl", f"{'https' if https else 'http'}://{host}")


def default_hooks(settings: Settings) -> list[ReloadHook]:
    """The standard post-reload hooks, in the order they must run."""
    return [
        apply_debug_cache_durations,
        apply_timezone,
        apply_encoding,
        apply_locale,
        BaseUrlHook(trust_proxy=settings.trust_proxy),
    ]
