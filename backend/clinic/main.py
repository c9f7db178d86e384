import logging
import os
import re
from typing import Optional

import click
from dotenv import load_dotenv
from flask import Flask
from werkzeug.exceptions import HTTPException

# Only load from .env when DATABASE_URL is not already defined by the environment
if not os.getenv("DATABASE_URL"):
    load_dotenv()

from clinic.core import config  # noqa: E402
from clinic.core.api_utils import api_response  # noqa: E402
from clinic.core.exceptions import ClinicError  # noqa: E402
from clinic.core.logging_config import setup_logging  # noqa: E402
from clinic.domain.clock import Clock  # noqa: E402
from clinic.domain.interfaces import IClinicStore  # noqa: E402
from clinic.services.appointment_service import AppointmentService  # noqa: E402
from clinic.services.ledger_report_service import LedgerReportService  # noqa: E402

logger = logging.getLogger(__name__)


def _mask_url_password(url: str) -> str:
    return re.sub(r"(://[^:/?#]+):[^@]*@", r"\1:***@", url)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _default_store() -> IClinicStore:
    from clinic.db.session import create_tables, get_engine
    from clinic.repositories.sqlalchemy_store import SqlAlchemyClinicStore

    # Idempotent on both SQLite and PostgreSQL
    create_tables()
    engine = get_engine()
    logger.info(
        "Database ready",
        extra={
            "context": {
                "url": _mask_url_password(str(engine.url)),
                "driver": engine.dialect.name,
            }
        },
    )
    return SqlAlchemyClinicStore()


def create_app(
    store: Optional[IClinicStore] = None, clock: Optional[Clock] = None
) -> Flask:
    """
    Application factory.

    Args:
        store: Storage adapter; defaults to the SQLAlchemy store on DATABASE_URL
        clock: Clock used for "today" lookups; defaults to the system clock
    """
    app = Flask(__name__)

    testing_env = os.getenv("TESTING", "").lower().strip()
    if testing_env in ("true", "1", "yes"):
        app.config["TESTING"] = True

    setup_logging(
        app=app,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_to_file=_env_flag("LOG_TO_FILE", "0" if app.config.get("TESTING") else "1"),
        use_json_format=_env_flag("LOG_JSON", "0"),
    )
    config.log_clinic_config()

    store = store or _default_store()
    appointment_service = AppointmentService(store, clock=clock)
    app.extensions["clinic"] = {
        "store": store,
        "appointments": appointment_service,
        "ledger_reports": LedgerReportService(store),
    }

    from clinic.controllers.appointment_controller import appointment_bp
    from clinic.controllers.financial_events_controller import financial_events_bp
    from clinic.controllers.health_controller import health_bp

    app.register_blueprint(appointment_bp)
    app.register_blueprint(financial_events_bp)
    app.register_blueprint(health_bp)

    @app.errorhandler(ClinicError)
    def handle_clinic_error(error: ClinicError):
        level = logging.ERROR if error.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"Request failed: {error.message}",
            extra={"context": {"code": error.code, "details": error.details}},
        )
        return api_response(False, error.message, error.to_dict(), error.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return api_response(False, error.description, None, error.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.error("Unhandled error", exc_info=error)
        return api_response(False, "Internal server error", None, 500)

    @app.cli.command("reconcile-ledger")
    @click.argument("appointment_id", type=int)
    def reconcile_ledger_command(appointment_id: int):
        """Generate the missing ledger events of a PAID appointment."""
        try:
            result = appointment_service.reconcile_ledger(appointment_id)
        except ClinicError as e:
            raise click.ClickException(e.message) from e
        if result.created:
            click.echo(f"Created {len(result.events)} ledger events")
        else:
            click.echo(result.note)

    logger.info(
        "Application created",
        extra={"context": {"store": type(store).__name__, "testing": app.testing}},
    )
    return app


if __name__ == "__main__":
    create_app().run(
        host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=False
    )
