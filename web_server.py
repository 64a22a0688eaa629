#!/usr/bin/env python3
"""
FastAPI control surface for the Solana arbitrage scanner.

REST endpoints start/stop the scanner, override its configuration and expose
its state; a WebSocket streams scanner events to dashboard clients.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from scanner.config import ScannerConfig, load_config
from scanner.events import EventLogHandler
from scanner.orchestrator import ScanOrchestrator
from solana_arbitrage.exceptions import ConfigurationError
from solana_arbitrage.metrics import get_metrics
from solana_arbitrage.version import get_version

logger = logging.getLogger(__name__)

app = FastAPI(title="Solana Arbitrage Scanner")

# CORS middleware for the dashboard frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ScannerState:
    """Holds the orchestrator, its background task and connected WebSocket clients."""

    def __init__(self):
        self.orchestrator: Optional[ScanOrchestrator] = None
        self.scan_task: Optional[asyncio.Task] = None
        self.connected_clients: List[WebSocket] = []
        self._unsubscribe = None
        self._log_handler: Optional[EventLogHandler] = None

    def configure(self, orchestrator: ScanOrchestrator):
        """Attach an orchestrator and forward its events to WebSocket clients."""
        self.reset()
        self.orchestrator = orchestrator
        self._unsubscribe = orchestrator.events.subscribe(self.broadcast)
        self._log_handler = EventLogHandler(orchestrator.events)
        logging.getLogger("scanner").addHandler(self._log_handler)

    def reset(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._log_handler is not None:
            logging.getLogger("scanner").removeHandler(self._log_handler)
            self._log_handler = None
        self.orchestrator = None
        self.scan_task = None

    def get_orchestrator(self) -> ScanOrchestrator:
        """Return the orchestrator, building one from SCANNER_CONFIG on first use."""
        if self.orchestrator is None:
            config_path = os.getenv("SCANNER_CONFIG")
            config = load_config(config_path) if config_path else ScannerConfig()
            self.configure(ScanOrchestrator(config, metrics=get_metrics()))
        return self.orchestrator

    async def broadcast(self, message: dict):
        """Broadcast message to all connected WebSocket clients"""
        disconnected = []
        for client in self.connected_clients:
            try:
                await client.send_json(message)
            except Exception:
                disconnected.append(client)

        for client in disconnected:
            if client in self.connected_clients:
                self.connected_clients.remove(client)


scanner_state = ScannerState()


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": get_version()}


@app.get("/api/scanner/status")
async def get_status():
    orchestrator = scanner_state.get_orchestrator()
    response = {"status": orchestrator.get_stats()}
    if orchestrator.metrics is not None:
        response["metrics"] = orchestrator.metrics.get_metrics_summary()
    return response


@app.post("/api/scanner/start")
async def start_scanner():
    orchestrator = scanner_state.get_orchestrator()
    task = scanner_state.scan_task
    if orchestrator.is_running or (task is not None and not task.done()):
        return {"status": "already_running"}

    scanner_state.scan_task = asyncio.create_task(orchestrator.start())
    logger.info("Scanner start requested")
    return {"status": "started"}


@app.post("/api/scanner/stop")
async def stop_scanner():
    orchestrator = scanner_state.get_orchestrator()
    if not orchestrator.is_running:
        return {"status": "not_running"}

    orchestrator.stop()
    logger.info("Scanner stop requested")
    return {"status": "stopping"}


@app.post("/api/scanner/config")
async def update_config(overrides: Dict[str, Any]):
    orchestrator = scanner_state.get_orchestrator()
    try:
        config = orchestrator.update_config(overrides)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "updated", "config": config.model_dump(mode="json")}


@app.get("/api/scanner/opportunities")
async def get_opportunities():
    orchestrator = scanner_state.get_orchestrator()
    opportunities = orchestrator.get_last_opportunities()
    return {
        "opportunities": [opp.to_dict() for opp in opportunities],
        "count": len(opportunities),
    }


@app.get("/api/scanner/logs")
async def get_logs(limit: int = 100):
    orchestrator = scanner_state.get_orchestrator()
    return {"logs": [e["payload"] for e in orchestrator.events.recent("log", limit)]}


@app.websocket("/ws/scanner")
async def scanner_websocket(websocket: WebSocket):
    """WebSocket streaming scanner events as {type, payload}"""
    await websocket.accept()
    scanner_state.connected_clients.append(websocket)

    try:
        orchestrator = scanner_state.get_orchestrator()
        await websocket.send_json(
            {"type": "status", "payload": orchestrator.snapshot().to_dict()}
        )
        while True:
            # Keep connection alive; clients only listen
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        if websocket in scanner_state.connected_clients:
            scanner_state.connected_clients.remove(websocket)


@app.on_event("shutdown")
async def shutdown_event():
    orchestrator = scanner_state.orchestrator
    if orchestrator is not None:
        await orchestrator.close()


if __name__ == "__main__":
    import uvicorn

    import logging_config

    logging_config.setup()
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
