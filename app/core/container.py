from __future__ import annotations

from typing import Optional

from app.core.settings import Settings, get_settings
from observability import Metrics, configure_logging
from signing import KeyService, KmsSigner, get_key_service


class Container:
    """
    Explicit wiring of the long-lived objects: one key service client and one signer.
    Build it once in the host process and pass `container.signer` to whatever needs it.
    """

    def __init__(self, settings: Optional[Settings] = None, *, key_service: Optional[KeyService] = None) -> None:
        self.settings = settings or get_settings()
        configure_logging(self.settings.LOG_LEVEL, service_name=self.settings.SERVICE_NAME)

        # Observability
        self.metrics = Metrics()

        # Key service + signer
        self.key_service = key_service or get_key_service(self.settings)
        self.signer = KmsSigner(
            self.key_service,
            metrics=self.metrics,
            address_cache_ttl_sec=self.settings.ADDRESS_CACHE_TTL_SEC,
        )
