import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from fleet.api.v1.auth import router as auth_router
from fleet.api.v1.me import router as me_router
from fleet.api.v1.users import router as users_router
from fleet.api.v1.companies import router as companies_router
from fleet.api.v1.suppliers import router as suppliers_router
from fleet.api.v1.drivers import router as drivers_router
from fleet.api.v1.vehicles import router as vehicles_router
from fleet.api.v1.refrigeration_units import router as refrigeration_router
from fleet.api.v1.refuelings import router as refuelings_router
from fleet.api.v1.dashboard import router as dashboard_router
from fleet.api.v1.doctor import router as doctor_router
from fleet.composition.router import router as composition_router
from fleet.consumption.router import router as consumption_router
from fleet.sales.router import router as sales_router
from fleet.core.config import settings
from fleet.db import models
from fleet.db.init_db import ensure_missing_columns, seed_initial_data
from fleet.db.session import engine

if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("fleet")

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Gestao de Frota - veiculos, refrigeracao, abastecimentos e vendas",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    models.Base.metadata.create_all(bind=engine)
    ensure_missing_columns(engine)
    seed_initial_data()
    if settings.ENV.lower() == "production":
        if settings.SECRET_KEY == "dev-secret-change-me":
            logger.warning("SECRET_KEY esta usando valor padrao em producao.")
        if settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            logger.warning("SQLALCHEMY_DATABASE_URI aponta para SQLite em producao.")


app.include_router(auth_router, prefix="/api")
app.include_router(me_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(companies_router, prefix="/api")
app.include_router(suppliers_router, prefix="/api")
app.include_router(drivers_router, prefix="/api")
app.include_router(vehicles_router, prefix="/api")
app.include_router(composition_router, prefix="/api")
app.include_router(consumption_router, prefix="/api")
app.include_router(sales_router, prefix="/api")
app.include_router(refrigeration_router, prefix="/api")
app.include_router(refuelings_router, prefix="/api")
app.include_router(dashboard_router, prefix="/api")
app.include_router(doctor_router, prefix="/api")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get("/api/health")
def health():
    return {"status": "ok"}
