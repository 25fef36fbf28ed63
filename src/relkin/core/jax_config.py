"""JAX setup for the Balding-Nicols pair kernel.

The kernel sums scaled cross products over every site of a run, so it must
run in float64; JAX defaults to float32. The first BaldingNicolsKinship
instance calls ensure_jax_configured(), which switches x64 on once per
process. Call configure_jax() yourself to pick a platform.
"""

from __future__ import annotations

from typing import Any

import jax
from loguru import logger

_configured = False


def configure_jax(enable_x64: bool = True, platform: str | None = None) -> None:
    """Set JAX precision and platform.

    Must run before the first JAX array is created; later calls only affect
    arrays created afterwards.

    Args:
        enable_x64: Use float64 arrays (required for exact accumulation).
        platform: "cpu", "gpu" or "tpu"; None lets JAX choose.
    """
    global _configured

    jax.config.update("jax_enable_x64", enable_x64)
    if platform is not None:
        jax.config.update("jax_platform_name", platform)
    _configured = True

    info = get_jax_info()
    logger.debug(
        f"JAX {info['version']} on {info['backend']} "
        f"({info['n_devices']} device(s), x64={info['x64_enabled']})"
    )


def ensure_jax_configured() -> None:
    """Apply the default configuration unless configure_jax() already ran."""
    if not _configured:
        configure_jax()


def get_jax_info() -> dict[str, Any]:
    """Version, backend, device count and precision of the JAX runtime."""
    return {
        "version": jax.__version__,
        "backend": jax.default_backend(),
        "n_devices": jax.device_count(),
        "x64_enabled": bool(jax.config.jax_enable_x64),
    }
