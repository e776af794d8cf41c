import logging
import re

from flask import Flask
from werkzeug.exceptions import MethodNotAllowed

from release_gateway.audit_logging import init_audit_logging
from release_gateway.cache import ResolutionCache
from release_gateway.config import GatewaySettings, get_settings
from release_gateway.core import GatewayServices, blueprint, method_not_allowed
from release_gateway.db_adapter import LatestCacheStore
from release_gateway.platforms import PlatformTable, PlatformTableRefresher, StaticPlatformTable
from release_gateway.rate_lim import init_rate_limiter
from release_gateway.resolver import LatestResolver
from release_gateway.s3_adapter import ObjectStorage
from release_gateway.secrets_loader import load_gateway_secrets
from release_gateway.validation import init_validation


def create_app(config=None, *, settings=None, storage=None, cache_store=None):
    if settings is None:
        # Secrets land in the environment before settings read it
        load_gateway_secrets()
        settings = get_settings()

    # Static assets are proxied upstream, so Flask must not claim /static
    app = Flask(__name__, static_folder=None)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    app.config["RATE_LIMIT_DEFAULT"] = settings.rate_limit_default
    app.config["TRUST_PROXY_HEADERS"] = settings.trust_proxy_headers
    if config:
        app.config.update(config)

    if storage is None:
        storage = ObjectStorage(settings)
    if cache_store is None:
        cache_store = LatestCacheStore(settings)

    initial_table = PlatformTable.from_mapping(settings.platform_manifests)
    if settings.platform_table_key:
        platforms = PlatformTableRefresher(
            storage,
            settings.platform_table_key,
            initial_table,
            interval_seconds=settings.platform_table_refresh_seconds,
        )
        platforms.start()
        app.extensions["platform_table_refresher"] = platforms
    else:
        platforms = StaticPlatformTable(initial_table)

    resolver = LatestResolver(storage, ResolutionCache(cache_store, settings.latest_cache_ttl), platforms)
    app.extensions["release_gateway"] = GatewayServices(
        settings=settings,
        storage=storage,
        resolver=resolver,
        allow_list=[re.compile(pattern) for pattern in settings.allow_list],
    )

    init_audit_logging(app)
    init_validation(app)
    init_rate_limiter(app)
    app.register_blueprint(blueprint)

    @app.errorhandler(MethodNotAllowed)
    def _method_not_allowed(_exc):
        return method_not_allowed()

    package_logger = logging.getLogger("release_gateway")
    for logger in (app.logger, package_logger):
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
            logger.addHandler(handler)
        logger.setLevel(settings.log_level.upper())
    return app


if __name__ == "__main__":
    application = create_app()
    application.run(debug=True)
