from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from staffing.api.accounts import router as accounts_router
from staffing.api.projects import router as projects_router
from staffing.api.project_technologies import router as project_technologies_router
from staffing.core.config import settings
from staffing.core.logging_config import setup_logging

setup_logging(settings.LOG_LEVEL.upper())

app = FastAPI(title="Staffing Admin")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],          # or list specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {"status": "ok", "message": "Staffing admin API running"}


@app.get("/health")
def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}


# include routers implemented in staffing/api
app.include_router(accounts_router)
app.include_router(projects_router)
app.include_router(project_technologies_router)
