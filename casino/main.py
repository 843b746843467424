from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from casino.app_services import crash_engine, redis, slide_engine
from casino.db import Session, create_tables
from casino.errors import GameError
from casino.routers import fairness, mines, rounds, video_poker
from casino.services.game_db import report_unsettled_payouts

scheduler = AsyncIOScheduler()
logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app):
    """Create tables and start the round engines.
    This function is called to start the server.
    """
    await create_tables()
    await crash_engine.start()
    await slide_engine.start()

    # Payouts stuck in PENDING or awaiting reconciliation are only reported
    scheduler.add_job(
        report_unsettled_payouts,
        "interval",
        minutes=5,
        args=[Session],
    )
    scheduler.start()
    try:
        yield
    finally:
        scheduler.shutdown()
        await crash_engine.stop()
        await slide_engine.stop()
        await redis.close()
        logging.info("Stop Server")


app = FastAPI(lifespan=lifespan)
app.include_router(mines.mines_router)
app.include_router(video_poker.video_poker_router)
app.include_router(rounds.crash_router)
app.include_router(rounds.slide_router)
app.include_router(fairness.fairness_router)


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    if exc.status_code >= 500:
        logging.error(f"{request.url.path}: {exc.kind} {exc.message} {exc.context}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


# if __name__ == "__main__":
#     uvicorn.run(app, host="0.0.0.0", port=8080, reload=True)
