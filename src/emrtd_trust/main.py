"""
Application entry point — wires dependencies and starts the scheduler.

Composition root: creates the cryptographic provider and the concrete
adapters, injects them into the refresh pipeline, and hands the pipeline
to the scheduler.

This is the ONLY place where concrete classes are instantiated.
Everything else receives its collaborators explicitly.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from functools import partial

import structlog

from emrtd_trust import __version__
from emrtd_trust.adapters.crypto_provider import CryptographyProvider
from emrtd_trust.adapters.ldif_source import LdifFileSource
from emrtd_trust.adapters.trust_list_builder import TrustListBuilder
from emrtd_trust.adapters.trust_store import TrustListExporter, TrustStore
from emrtd_trust.config import AppSettings
from emrtd_trust.pipeline import refresh_trust_store
from emrtd_trust.registry import TrustRegistry
from emrtd_trust.scheduler import create_scheduler


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured logging.

    Colored, human-readable console output with ISO timestamps; events
    below `log_level` are dropped by the filtering bound logger.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@dataclass(frozen=True, slots=True)
class Components:
    """
    Everything the scheduled refresh service is built from.

    Passport authentication (SodDecoder, DocumentAuthenticator) is a library
    API that callers construct themselves; the service never decodes a SOD.
    """

    source: LdifFileSource
    builder: TrustListBuilder
    registry: TrustRegistry
    store: TrustStore
    exporter: TrustListExporter | None


def create_components(settings: AppSettings) -> Components:
    """
    Instantiate all concrete adapters from application settings.

    One CryptographyProvider is shared by the builder and the registry.
    """
    crypto = CryptographyProvider()
    builder = TrustListBuilder(crypto)
    exporter = None
    if settings.trust_list.der_output or settings.trust_list.pem_output:
        exporter = TrustListExporter(
            builder,
            der_path=settings.trust_list.der_output,
            pem_path=settings.trust_list.pem_output,
        )
    return Components(
        source=LdifFileSource(settings.trust_list.sources),
        builder=builder,
        registry=TrustRegistry(crypto),
        store=TrustStore(),
        exporter=exporter,
    )


def main() -> None:
    """Wire dependencies and launch the scheduled trust-store refresh."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    log.info(
        "app.starting",
        version=__version__,
        log_level=settings.log_level,
        sources=[str(p) for p in settings.trust_list.sources],
        registry_height=settings.registry.height,
        cron=settings.scheduler.cron,
        run_on_startup=settings.run_on_startup,
    )

    components = create_components(settings)

    refresh_fn = partial(
        refresh_trust_store,
        source=components.source,
        builder=components.builder,
        registry=components.registry,
        store=components.store,
        height=settings.registry.height,
        exporter=components.exporter,
    )

    scheduler = create_scheduler(
        refresh_fn=refresh_fn,
        cron=settings.scheduler.cron,
        run_on_startup=settings.run_on_startup,
    )

    log.info("app.scheduler_starting", cron=settings.scheduler.cron)

    try:
        scheduler.start()
    except KeyboardInterrupt:
        log.info("app.shutdown", reason="signal received")
    except SystemExit:
        log.info("app.shutdown", reason="signal received")
        raise
    except Exception as e:
        log.error("app.fatal_error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
