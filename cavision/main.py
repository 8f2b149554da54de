import logging

# Parameter Store values must be in os.environ before Settings is first read.
from cavision.core.ssm import load_ssm_parameters
load_ssm_parameters()

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI

from cavision.api.routes.chat import router as chat_router
from cavision.api.routes.profile import router as profile_router
from cavision.api.routes.quiz import router as quiz_router
from cavision.core.scheduler import shutdown_scheduler, start_scheduler
from cavision.db.session import init_db

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="CA Vision AI API")

_scheduler = None


@app.get("/health", tags=["health"])
def health_check():
    return {"status": "ok"}


app.include_router(quiz_router)
app.include_router(chat_router)
app.include_router(profile_router)


@app.on_event("startup")
def _startup():
    global _scheduler
    init_db()
    _scheduler = start_scheduler()


@app.on_event("shutdown")
def _shutdown():
    shutdown_scheduler(_scheduler)
