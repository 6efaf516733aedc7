"""
Test project application.

    uvicorn --factory cairn_site.app:create_app

On startup the store is connected and, when it holds no users, seeded with
:data:`cairn_site.data.initial_data`.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from cairn import AdminUI, Cairn, CairnConfig, ConfigLoader, WebServer, create_store

from .data import initial_data
from .lists import AUTH_LIST, declare_lists
from .routes import register_routes

logger = logging.getLogger("cairn_site")

__all__ = ["create_app", "create_cairn", "initial_data"]


def create_cairn(config: CairnConfig) -> Cairn:
    cairn = Cairn(
        config.name,
        create_store(config.database_url),
        cookie_secret=config.cookie_secret,
        cookie_secure=config.cookie_secure,
        session_ttl=timedelta(days=config.session_ttl_days),
    )
    declare_lists(cairn, config)
    return cairn


def create_app(config: Optional[CairnConfig] = None) -> WebServer:
    if config is None:
        config = ConfigLoader.load()

    cairn = create_cairn(config)
    strategy = cairn.create_auth_strategy(AUTH_LIST)
    admin = AdminUI(cairn, admin_path=config.admin_path, auth_strategy=strategy)
    server = WebServer(cairn, config, admin=admin, session=True)

    if config.twitter_auth_enabled:
        logger.warning("Twitter sign-in is enabled in configuration but not available; ignoring")

    register_routes(server, cairn, strategy, admin, config, initial_data)

    @server.on_startup
    async def connect_and_seed():
        await cairn.connect()
        if await cairn.bootstrap(initial_data, guard_list=AUTH_LIST):
            logger.info("Seeded initial data")

    return server
