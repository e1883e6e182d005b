"""Service for loading and managing direct carrier scrapers."""

import importlib.util
import logging
from pathlib import Path

import httpx

from parcelsync.carriers.base import BaseCarrier, CarrierConfig
from parcelsync.config import settings

logger = logging.getLogger(__name__)


class CarrierLoader:
    """Loads direct scrapers from the carriers directory.

    Each subdirectory with a ``carrier.yaml`` and a ``tracker.py`` becomes one
    scraper, keyed by the ``id`` in its yaml (the slug the resolver uses).
    """

    def __init__(self, carriers_dir: Path | None = None, client: httpx.AsyncClient | None = None):
        self.carriers_dir = carriers_dir or settings.carriers_dir
        self.client = client
        self._carriers: dict[str, BaseCarrier] = {}
        self._configs: dict[str, CarrierConfig] = {}

    def load_all(self) -> dict[str, BaseCarrier]:
        """Load all carrier scrapers from the carriers directory."""
        if self._carriers:
            return self._carriers

        for carrier_dir in sorted(self.carriers_dir.iterdir()):
            if not carrier_dir.is_dir():
                continue
            if carrier_dir.name.startswith("_") or carrier_dir.name.startswith("."):
                continue

            self._load_carrier(carrier_dir)

        return self._carriers

    def _load_carrier(self, carrier_dir: Path) -> None:
        """Load a single carrier scraper."""
        config_path = carrier_dir / "carrier.yaml"
        tracker_path = carrier_dir / "tracker.py"

        if not config_path.exists():
            logger.debug("Skipping %s: no carrier.yaml", carrier_dir.name)
            return

        try:
            config = CarrierConfig.from_yaml(config_path)
        except (OSError, KeyError, TypeError, ValueError) as e:
            logger.error("Error loading config for %s: %s", carrier_dir.name, e)
            return

        if not config.enabled:
            logger.info("Skipping %s: disabled", carrier_dir.name)
            return

        self._configs[config.id] = config

        if not tracker_path.exists():
            logger.warning("%s has no tracker.py", carrier_dir.name)
            return

        try:
            # Dynamically load the tracker module
            module_name = f"parcelsync.carriers.{carrier_dir.name}.tracker"
            spec = importlib.util.spec_from_file_location(module_name, tracker_path)
            if spec is None or spec.loader is None:
                logger.error("Error loading tracker for %s: invalid spec", carrier_dir.name)
                return

            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)

            # The carrier class is the BaseCarrier subclass defined in tracker.py itself
            carrier_class = None
            for name in dir(module):
                obj = getattr(module, name)
                if (
                    isinstance(obj, type)
                    and issubclass(obj, BaseCarrier)
                    and obj.__module__ == module_name
                ):
                    carrier_class = obj
                    break

            if carrier_class is None:
                logger.error("No carrier class found in %s", tracker_path)
                return

            carrier = carrier_class(config, self.client) if self.client else carrier_class(config)
            self._carriers[config.id] = carrier
            logger.info("Loaded carrier: %s (%s)", config.name, config.id)

        except Exception:
            logger.exception("Error loading tracker for %s", carrier_dir.name)

    def get_carrier(self, carrier_id: str) -> BaseCarrier | None:
        """Get a carrier scraper by slug."""
        if not self._carriers:
            self.load_all()
        return self._carriers.get(carrier_id)

    def has_carrier(self, carrier_id: str) -> bool:
        return self.get_carrier(carrier_id) is not None

    def get_config(self, carrier_id: str) -> CarrierConfig | None:
        """Get a carrier config by slug."""
        if not self._configs:
            self.load_all()
        return self._configs.get(carrier_id)

    def list_carriers(self) -> list[CarrierConfig]:
        """List all loaded carrier configurations."""
        if not self._configs:
            self.load_all()
        return list(self._configs.values())

    async def aclose(self) -> None:
        for carrier in self._carriers.values():
            await carrier.aclose()


# Global carrier loader instance
carrier_loader = CarrierLoader()
