# fastapi_app.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .config import configure_logging, settings
from .discovery import KubeDiscovery

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Discovery is optional for the API: without it only /health and /api/config work
try:
    discovery: Optional[KubeDiscovery] = KubeDiscovery(settings)
    discovery.init()
    logger.info("✅ Kubernetes discovery initialized")
except Exception as e:
    logger.warning(f"⚠️ Kubernetes discovery initialization failed: {e}. Peer endpoints unavailable.")
    discovery = None

# -----------------------------------------------------------------------------
# FastAPI app
# -----------------------------------------------------------------------------
app = FastAPI(title="Kube Discovery", version="1.0.0")

# -----------------------------------------------------------------------------
# Models
# -----------------------------------------------------------------------------
class PodView(BaseModel):
    name: str
    namespace: Optional[str] = None
    ip: Optional[str] = None
    group: Optional[str] = Field(default=None, description="Rolling-update group")
    ready: bool


class PeerView(BaseModel):
    host: str
    port: int


class RoundView(BaseModel):
    namespace: Optional[str] = None
    labels: Optional[str] = None
    fetched_at: Optional[datetime] = None
    peers: List[PeerView] = Field(default_factory=list)
    error: Optional[str] = None

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _discovery() -> KubeDiscovery:
    if discovery is None or not discovery.clustering_enabled:
        raise HTTPException(status_code=503, detail="Kubernetes discovery is not available")
    return discovery

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

@app.get("/api/config")
def api_config() -> Dict[str, Any]:
    """Effective settings with secrets masked."""
    return settings.masked_dump()

@app.get("/api/pods", response_model=List[PodView])
def api_pods():
    """Pods of the namespace with readiness and rolling-update group."""
    discovery_round = _discovery().resolve()
    if discovery_round.failure is not None:
        raise HTTPException(status_code=502, detail=str(discovery_round.failure))
    return [PodView(**pod.to_dict()) for pod in discovery_round.pods]

@app.get("/api/peers", response_model=RoundView)
def api_peers():
    """Endpoints a discovery round would send requests to."""
    discovery_round = _discovery().resolve()
    return RoundView(
        namespace=discovery_round.namespace,
        labels=discovery_round.label_selector,
        fetched_at=discovery_round.fetched_at,
        peers=[PeerView(host=e.host, port=e.port) for e in sorted(discovery_round.endpoints)],
        error=str(discovery_round.failure) if discovery_round.failure else None,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.HTTP_PORT)
