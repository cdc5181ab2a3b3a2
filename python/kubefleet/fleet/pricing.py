"""
filename: kubefleet/fleet/pricing.py

Spot price lookup: the trailing week of price history for one machine type,
restricted to Linux/UNIX products.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Mapping, Optional

from kubefleet.errors import ProviderError
from kubefleet.ids import Clock, utc_now
from kubefleet.models.providers import ProviderName
from kubefleet.models.spot import ProvisioningConfig
from kubefleet.providers import ProviderFactory, build_provider

logger = logging.getLogger(__name__)

PRICE_HISTORY_WINDOW = timedelta(days=7)
LINUX_PRODUCT_DESCRIPTION = "Linux/UNIX"


async def get_spot_prices(
    machine_type: str,
    config: ProvisioningConfig,
    *,
    providers: Optional[Mapping[ProviderName, ProviderFactory]] = None,
    clock: Optional[Clock] = None,
) -> List[str]:
    """Return recent Linux/UNIX spot prices for `machine_type`.

    Prices come back in provider order and are not re-sorted. A failed or
    empty history query yields an empty list.

    Args:
        machine_type: Instance type to price.
        config: Supplies the provider, account, region and availability zone.
        providers: Provider registry override.
        clock: Source of the current time.

    Raises:
        UnsupportedProvider: If `config.provider` is not registered.
        ClientConstructionFailed: If the provider client cannot be built.
    """
    clock = clock or utc_now
    provider = await build_provider(
        config.provider, config.account, config.aws.region, providers
    )

    end = clock()
    try:
        history = await provider.describe_price_history(
            config.aws.availability_zone, machine_type, end - PRICE_HISTORY_WINDOW, end
        )
    except ProviderError as exc:
        logger.warning("describe spot price history for %s: %s", machine_type, exc)
        return []

    return [
        point.price
        for point in history
        if point.product_description.casefold() == LINUX_PRODUCT_DESCRIPTION.casefold()
    ]
