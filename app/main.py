from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.academic_years.router import router as academic_years_router
from app.api.v1.auth.router import router as auth_router
from app.api.v1.billing_periods.router import router as billing_periods_router
from app.api.v1.fees.router import router as fees_router
from app.api.v1.notifications.router import router as notifications_router
from app.api.v1.other_payments.router import router as other_payments_router
from app.api.v1.payments.router import router as payments_router
from app.api.v1.portal.router import router as portal_router
from app.api.v1.reports.router import router as reports_router
from app.api.v1.students.router import router as students_router
from app.core.config import settings
from app.core.logging import configure_logging
from app.core.scheduler import start_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    scheduler = start_scheduler()
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)


def create_app() -> FastAPI:
    app = FastAPI(title="Preschool Fee Portal", lifespan=lifespan)

    # CORS: comma separated origins, "*" for any
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth_router)
    app.include_router(academic_years_router)
    app.include_router(billing_periods_router)
    app.include_router(students_router)
    app.include_router(fees_router)
    app.include_router(payments_router)
    app.include_router(other_payments_router)
    app.include_router(notifications_router)
    app.include_router(portal_router)
    app.include_router(reports_router)

    return app


app = create_app()
