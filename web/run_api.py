"""Run the filevault API server: python -m web.run_api (or the ``filevault`` script)."""
from __future__ import annotations

import asyncio
import logging
import sys

import uvicorn

from config import ConfigError, load_config
from vault.errors import StorageError
from vault.models import create_engine, create_session_factory, ensure_database, init_db
from vault.objects import ObjectStore, create_s3_client
from vault.users import UserStore
from web.api.main import create_app
from web.auth import SessionCodec

logger = logging.getLogger("filevault")

EXIT_CONFIG = 2
EXIT_DATABASE = 3
EXIT_OBJECT_STORE = 4


async def _init_users(settings) -> UserStore:
    await ensure_database(settings.database_url, settings.db_sslmode)
    engine = create_engine(settings.database_url, settings.db_sslmode)
    await init_db(engine)
    users = UserStore(create_session_factory(engine))
    await users.ensure_default_admin(settings.default_admin_username, settings.default_admin_password)
    # Pooled connections belong to this loop; uvicorn starts its own
    await engine.dispose()
    return users


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info("Starting filevault...")

    try:
        settings = load_config()
    except ConfigError as e:
        logger.critical("Error loading configuration: %s", e)
        sys.exit(EXIT_CONFIG)

    try:
        users = asyncio.run(_init_users(settings))
    except StorageError as e:
        logger.critical("Error initializing database: %s", e)
        sys.exit(EXIT_DATABASE)
    logger.info("Connected to database.")

    try:
        objects = ObjectStore(
            create_s3_client(
                settings.minio_url,
                settings.minio_access_key_id,
                settings.minio_secret_access_key,
            ),
            settings.minio_bucket_name,
        )
        objects.ensure_bucket()
    except StorageError as e:
        logger.critical("Error initializing object store: %s", e)
        sys.exit(EXIT_OBJECT_STORE)
    logger.info("Connected to object store at %s.", settings.minio_url)

    sessions = SessionCodec(
        settings.session_secret,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
    )
    app = create_app(users, objects, sessions)

    logger.info("Server listening on %s:%d", settings.server_host, settings.server_port)
    uvicorn.run(app, host=settings.server_host, port=settings.server_port)


if __name__ == "__main__":
    main()
