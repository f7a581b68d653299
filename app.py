from __future__ import annotations

import logging

from dds.api import create_app
from dds.config import Settings
from dds.controller import DeviceScaler
from dds.inventory import Inventory

logger = logging.getLogger(__name__)


def build_app():
	"""Build the Flask app around a Kubernetes-backed device scaler."""
	settings = Settings.from_env()
	logging.basicConfig(
		level=getattr(logging, settings.log_level.upper(), logging.INFO),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)

	inventory = Inventory(settings)
	scaler = DeviceScaler(inventory, settings)
	logger.info(
		f"Device scaler ready: config map {settings.config_namespace}/{settings.config_map_name}, "
		f"reuse cooldown {settings.reuse_cooldown_s}s"
	)
	return create_app(scaler)


# Build app at module level (for gunicorn)
app = build_app()


if __name__ == "__main__":
	app.run(host="0.0.0.0", port=8080)
