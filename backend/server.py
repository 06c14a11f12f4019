"""
SatScope Backend API Server
===========================
FastAPI server that exposes the analysis pipeline:
1. Validate the plan and enforce guardrails
2. Serve cached artifacts by plan fingerprint
3. Run the dataset workflow on Earth Engine
4. Return the artifact (map tile URL, time series, statistics, attributions)
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from satscope import config
from satscope.errors import AnalysisError
from satscope.gee.engine import initialize_earth_engine, is_earth_engine_initialized
from satscope.pipeline import AnalysisPipeline, create_pipeline

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="SatScope API",
    description="Geospatial time-series and change analysis on Google Earth Engine",
    version="1.0.0"
)

# Enable CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global state
_pipeline: Optional[AnalysisPipeline] = None


def get_pipeline() -> AnalysisPipeline:
    """Process-wide pipeline, built on first use."""
    global _pipeline
    if _pipeline is None:
        _pipeline = create_pipeline(config.get_settings())
    return _pipeline


# Request Models
class RunRequest(BaseModel):
    plan: Dict[str, Any]


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    logger.info(f"{request.url.path} -> {exc.status_code} {exc.error_type}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("🚀 Starting SatScope API Server...")
    if not initialize_earth_engine(config.get_settings()):
        logger.warning("⚠️ Earth Engine unavailable; analysis requests will fail")
    logger.info("✅ Server ready!")


@app.get("/")
async def root():
    return {
        "service": "SatScope API",
        "status": "running",
        "ee_initialized": is_earth_engine_initialized(),
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "earth_engine": is_earth_engine_initialized(),
        "timestamp": datetime.now().isoformat()
    }


@app.post("/api/run")
def run_analysis(request: RunRequest, pipeline: AnalysisPipeline = Depends(get_pipeline)):
    """
    Main analysis endpoint.
    Runs the plan through the pipeline and returns the artifact.
    """
    try:
        result = pipeline.run(request.plan)
        return result.to_dict()
    except AnalysisError:
        raise
    except Exception:
        logger.exception("❌ Analysis failed")
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "Analysis failed due to an internal error."},
        )


@app.get("/api/cache/stats")
def cache_stats(pipeline: AnalysisPipeline = Depends(get_pipeline)):
    return pipeline.cache.stats()


@app.delete("/api/cache")
def clear_cache(pipeline: AnalysisPipeline = Depends(get_pipeline)):
    cleared = len(pipeline.cache)
    pipeline.cache.clear()
    return {"cleared": cleared}


# Run with: uvicorn backend.server:app --reload --port 8000
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
