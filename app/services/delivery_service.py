"""Delivery fee policy lookup and management."""
import logging
from decimal import Decimal
from typing import Any, Dict, List

from app.backends.base import StoreBackend
from app.entities import DeliverySettings
from app.exceptions import PersistenceFailure
from app.utils.money import money

logger = logging.getLogger(__name__)


def get_delivery_policy(backend: StoreBackend) -> DeliverySettings:
    """
    Return the delivery policy in force.

    The most recent active settings row wins. If there is none, or the
    backend cannot be reached, the fallback policy applies; checkout is
    never blocked on this lookup.
    """
    try:
        settings = backend.get_active_delivery_settings()
    except PersistenceFailure as e:
        logger.warning(f"[DELIVERY] Settings unavailable, using fallback policy: {e.message} {e.detail or ''}")
        return DeliverySettings.fallback()

    if settings is None:
        logger.info("[DELIVERY] No active delivery settings, using fallback policy")
        return DeliverySettings.fallback()
    return settings


def _settings_fields(delivery_fee: Decimal, free_delivery_threshold: Decimal, is_active: bool) -> Dict[str, Any]:
    return {
        'delivery_fee': money(delivery_fee),
        'free_delivery_threshold': money(free_delivery_threshold),
        'is_active': bool(is_active),
    }


def list_settings(backend: StoreBackend) -> List[DeliverySettings]:
    return backend.list_delivery_settings()


def create_settings(backend: StoreBackend, delivery_fee: Decimal, free_delivery_threshold: Decimal,
                    is_active: bool = True) -> DeliverySettings:
    settings = backend.create_delivery_settings(
        _settings_fields(delivery_fee, free_delivery_threshold, is_active)
    )
    logger.info(f"[DELIVERY] Created settings {settings.id} (fee={settings.delivery_fee}, "
                f"threshold={settings.free_delivery_threshold})")
    return settings


def update_settings(backend: StoreBackend, settings_id: str, delivery_fee: Decimal,
                    free_delivery_threshold: Decimal, is_active: bool = True) -> DeliverySettings:
    settings = backend.update_delivery_settings(
        settings_id, _settings_fields(delivery_fee, free_delivery_threshold, is_active)
    )
    logger.info(f"[DELIVERY] Updated settings {settings_id}")
    return settings


def delete_settings(backend: StoreBackend, settings_id: str) -> None:
    backend.delete_delivery_settings(settings_id)
    logger.info(f"[DELIVERY] Deleted settings {settings_id}")
