from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leadms.config import settings
from leadms.dependencies import get_workspace
from leadms.routes import attachments, auth, conversations, followups, health, leads
from leadms.utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    workspace = get_workspace()
    workspace.start()
    logger.info("LeadMS API started")
    try:
        yield
    finally:
        workspace.close()
        logger.info("LeadMS API stopped")


app = FastAPI(title="LeadMS CRM API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(leads.router)
app.include_router(followups.router)
app.include_router(conversations.router)
app.include_router(attachments.router)
