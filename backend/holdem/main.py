from __future__ import annotations

import importlib.util
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from pydantic import ValidationError

from .config import configure_logging, load_environment
from .models import ActionRequestModel, CreateTableRequestModel, TableStateModel
from .session_manager import (
    InvalidActionError,
    SessionManager,
    SessionNotFoundError,
    TableFlowError,
    UnknownPlayerError,
)

load_environment()
configure_logging()

DefaultResponseClass = ORJSONResponse if importlib.util.find_spec("orjson") else JSONResponse
manager = SessionManager()


@asynccontextmanager
async def lifespan(_: FastAPI):
    try:
        yield
    finally:
        await manager.aclose()


app = FastAPI(
    title="Hold'em Table API",
    version="0.1.0",
    default_response_class=DefaultResponseClass,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _invalid_action_detail(exc: InvalidActionError) -> dict[str, Any]:
    return {
        "message": str(exc),
        "legalActions": [item.to_model().model_dump(by_alias=True) for item in exc.legal_actions],
    }


@app.get("/api/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/tables", response_model=TableStateModel)
async def create_table(payload: CreateTableRequestModel | None = None) -> TableStateModel:
    return await manager.create_table(payload or CreateTableRequestModel())


@app.get("/api/tables/{table_id}", response_model=TableStateModel)
async def get_table(table_id: str) -> TableStateModel:
    try:
        return await manager.get_state(table_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.post("/api/tables/{table_id}/actions", response_model=TableStateModel)
async def submit_action(table_id: str, payload: ActionRequestModel) -> TableStateModel:
    try:
        return await manager.submit_action(table_id, payload)
    except (SessionNotFoundError, UnknownPlayerError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidActionError as exc:
        raise HTTPException(status_code=422, detail=_invalid_action_detail(exc)) from exc
    except TableFlowError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


def _ws_error_payload(request_id: str, status: int, message: str, extra: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "type": "error",
        "requestId": request_id,
        "status": status,
        "message": message,
    }
    if extra:
        payload.update(extra)
    return payload


def _ws_state(request_id: str, state: TableStateModel) -> dict[str, Any]:
    return {"type": "table_state", "requestId": request_id, "payload": state.model_dump(by_alias=True)}


@app.websocket("/api/ws/tables/{table_id}")
async def table_socket(websocket: WebSocket, table_id: str) -> None:
    await websocket.accept()
    try:
        initial_state = await manager.get_state(table_id)
    except SessionNotFoundError as exc:
        await websocket.send_json(_ws_error_payload(request_id="", status=404, message=str(exc)))
        await websocket.close(code=4404)
        return

    await websocket.send_json(_ws_state("", initial_state))

    while True:
        try:
            raw_message = await websocket.receive_json()
        except WebSocketDisconnect:
            return
        except ValueError:
            await websocket.send_json(_ws_error_payload(request_id="", status=400, message="Malformed websocket JSON payload."))
            continue

        if not isinstance(raw_message, dict):
            await websocket.send_json(_ws_error_payload(request_id="", status=400, message="Websocket message must be a JSON object."))
            continue

        request_id = str(raw_message.get("requestId", ""))
        op = str(raw_message.get("op", "")).strip().lower()

        try:
            if op == "ping":
                await websocket.send_json({"type": "pong", "requestId": request_id})
            elif op == "get_state":
                await websocket.send_json(_ws_state(request_id, await manager.get_state(table_id)))
            elif op == "action":
                payload = ActionRequestModel.model_validate(
                    {
                        "actionType": raw_message.get("actionType"),
                        "amount": raw_message.get("amount"),
                        "playerId": raw_message.get("playerId"),
                    }
                )
                await websocket.send_json(_ws_state(request_id, await manager.submit_action(table_id, payload)))
            else:
                await websocket.send_json(
                    _ws_error_payload(request_id=request_id, status=400, message=f"Unsupported websocket op: {op}")
                )
        except (SessionNotFoundError, UnknownPlayerError) as exc:
            await websocket.send_json(_ws_error_payload(request_id=request_id, status=404, message=str(exc)))
        except ValidationError as exc:
            await websocket.send_json(
                _ws_error_payload(
                    request_id=request_id,
                    status=422,
                    message="Invalid action payload.",
                    extra={"detail": exc.errors(include_url=False)},
                )
            )
        except InvalidActionError as exc:
            await websocket.send_json(
                _ws_error_payload(request_id=request_id, status=422, message=str(exc), extra=_invalid_action_detail(exc))
            )
        except TableFlowError as exc:
            await websocket.send_json(_ws_error_payload(request_id=request_id, status=409, message=str(exc)))
