"""
PageWatch settings selector.

DJANGO_ENV picks the settings module: "production", "test", or anything else
for development. pytest bypasses this by pointing DJANGO_SETTINGS_MODULE at
config.settings.test directly.
"""

import os

_env = os.getenv("DJANGO_ENV", "development").lower()

if _env in ("production", "prod"):
    from .production import *  # noqa: F401,F403
elif _env == "test":
    from .test import *  # noqa: F401,F403
else:
    from .development import *  # noqa: F401,F403
