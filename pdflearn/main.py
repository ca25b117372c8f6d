from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import time
import structlog

from pdflearn.db import init_db
from pdflearn.routers import auth as auth_router
from pdflearn.routers import documents as documents_router
from pdflearn.routers import progress as progress_router
from pdflearn.notifications import manager
from pdflearn.services.logging import configure_logging, log_api_request
from pdflearn.services.monitoring import health_checker, get_metrics, REQUEST_COUNT, REQUEST_DURATION
from pdflearn.middleware.rate_limit import limiter
from pdflearn.session import resolve_session

# Configure logging
configure_logging()
logger = structlog.get_logger()

app = FastAPI(
    title="PDF Learn",
    description="Turn PDFs into flashcards and quizzes and track study progress",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    log_api_request(request)

    response = await call_next(request)

    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Label by route template so /documents/1 and /documents/2 share a series
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code
    ).inc()
    REQUEST_DURATION.labels(
        method=request.method,
        endpoint=endpoint
    ).observe(process_time)

    response.response_time = process_time
    log_api_request(request, response)

    return response


# ----------------- Health & Monitoring Endpoints -----------------
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return health_checker.get_health_status()


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    return get_metrics()


@app.get("/")
def index():
    return {"name": app.title, "version": app.version, "docs": "/docs"}


# ----------------- Startup -----------------
@app.on_event("startup")
def on_startup():
    init_db()


# ----------------- Routers -----------------
app.include_router(auth_router.router)
app.include_router(documents_router.router)
app.include_router(progress_router.router)


# ----------------- WebSocket -----------------
@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Pushes upload stage changes to the signed-in user"""
    user_session = resolve_session(websocket.query_params.get("token", ""))
    if user_session is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await manager.connect(user_session.user_id, websocket)
    try:
        while True:
            # Keep connection alive; ignore incoming messages
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(user_session.user_id, websocket)
