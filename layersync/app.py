"""
Engine factory.
Configures logging for the selected environment and builds the dependency container.
A config with DEBUG set logs at DEBUG whatever LOG_LEVEL says.

Usage:
    container = await create_engine("production")
    async with container() as request_container:
        handler = await request_container.get(CreateObjectWithCascadeHandler)
        result = await handler.execute(command)
    await container.close()
"""

from typing import Optional

from dishka import AsyncContainer

from layersync.config.logging_config import setup_logging
from layersync.config.settings import get_config
from layersync.setup.ioc import create_container


async def create_engine(config_name: Optional[str] = None) -> AsyncContainer:
    """
    Build the engine for an environment.

    Args:
        config_name: 'development', 'testing' or 'production'; APP_ENV when omitted

    Returns:
        Dishka container; close() it on shutdown
    """
    config = get_config(config_name)
    setup_logging("DEBUG" if config.DEBUG else config.LOG_LEVEL, config.LOG_FILE or None)
    return await create_container(config.STORAGE_BACKEND)
