"""
ASGI config for taskhub project.

It exposes the ASGI callable as a module-level variable named ``application``.

For more information on this file, see
https://docs.djangoproject.com/en/dev/howto/deployment/asgi/

"""

import os
import sys
from pathlib import Path

from django.core.asgi import get_asgi_application

BASE_DIR = Path(__file__).resolve(strict=True).parent.parent
sys.path.append(str(BASE_DIR / "taskhub"))

# If DJANGO_SETTINGS_MODULE is unset, select a sensible default based on BUILD_ENV
# Default to local settings for the local dev image, production otherwise.
if "DJANGO_SETTINGS_MODULE" not in os.environ:
    build_env = os.environ.get("BUILD_ENV", "production").lower()
    default_settings = (
        "config.settings.local"
        if build_env == "local"
        else "config.settings.production"
    )
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", default_settings)

django_application = get_asgi_application()

from django.conf import settings  # noqa: E402

from taskhub.realtime import hub  # noqa: E402
from taskhub.realtime.server import RealtimeServer  # noqa: E402

if settings.REALTIME_ENABLED:
    realtime_server = RealtimeServer()
    hub.activate(realtime_server)
    # Socket.IO must sit above Django because it uses BOTH HTTP long-polling
    # (Engine.IO) and WebSocket upgrades on the same path.
    application = realtime_server.asgi_app(other_asgi_app=django_application)
else:
    application = django_application
