import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from gobuddy.core.config import settings
from gobuddy.db.database import Base, engine, check_db_connection
from gobuddy.models import commissions, errands, ratings, settlements, users  # noqa: F401  register tables
from gobuddy.api.v1.routes.settlements import router as settlements_router
from gobuddy.api.v1.routes.errands import router as errands_router
from gobuddy.api.v1.routes.ratings import router as ratings_router
from gobuddy.rabbitmq.setup import init_rabbitmq
from gobuddy.rabbitmq.background_consumer import start_background_consumer, stop_background_consumer
from gobuddy.rabbitmq.producer import close_rabbitmq_producer
from gobuddy.services.overdue_settlement_check import start_overdue_settlement_check, stop_overdue_settlement_check

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENABLE_EVENT_CONSUMER or settings.ENABLE_EVENT_PUBLISHING:
        # Initialize RabbitMQ
        init_rabbitmq()

    if settings.ENABLE_EVENT_CONSUMER:
        # React to errand/commission completion and rating changes from the app backend
        start_background_consumer()

    if settings.ENABLE_OVERDUE_CHECK:
        # Daily overdue marking and runner locking
        start_overdue_settlement_check()

    yield

    if settings.ENABLE_EVENT_CONSUMER:
        stop_background_consumer()
    if settings.ENABLE_OVERDUE_CHECK:
        stop_overdue_settlement_check()
    close_rabbitmq_producer()


app = FastAPI(
    title=settings.APP_NAME,
    description="Settlement periods, errand pricing and weighted user ratings for GoBuddy",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(settlements_router)
app.include_router(errands_router)
app.include_router(ratings_router)

@app.get("/")
def read_root():
    return {"message": f"{settings.APP_NAME} API", "version": "1.0.0"}

@app.get("/health")
def health_check():
    database_ok = check_db_connection()
    return {"status": "healthy" if database_ok else "degraded", "database": database_ok}
