"""
FastAPI server for the Kvinti game engine.

Provides REST and WebSocket APIs for game management and computer play.
"""

from __future__ import annotations
import asyncio
import logging
import math
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from kvinti import __version__
from kvinti.ai.search import Difficulty, SearchEngine, SearchConfig, SearchStats
from kvinti.core.errors import GameOverError, IllegalActionError, KvintiError
from kvinti.core.game import Game, GameRecord
from kvinti.core.moves import Action
from kvinti.core.notation import (
    action_to_algebraic, action_to_notation, history_lines,
    notation_to_position, parse_tags, position_to_notation, record_from_text,
    record_to_text
)

from . import persistence

logger = logging.getLogger(__name__)

# Artificial thinking delay (seconds) before the computer searches
AI_DELAY = float(os.environ.get("KVINTI_AI_DELAY", "0"))


# --- Pydantic Models ---

class CreateGameRequest(BaseModel):
    player1_type: str = "human"
    player2_type: str = "ai"
    difficulty: str = "moderate"


class ImportGameRequest(BaseModel):
    text: str = Field(..., description="PGN-like record as exported by /games/{id}/record")
    difficulty: str = "moderate"


class CreateGameResponse(BaseModel):
    game_id: str


class PieceModel(BaseModel):
    key: str
    kind: str
    player: int
    cell: str
    row: int
    col: int


class StatusModel(BaseModel):
    kind: str
    winner: Optional[int] = None
    reason: Optional[str] = None


class GameStateResponse(BaseModel):
    game_id: str
    pieces: list[PieceModel]
    board: list[list[int]]
    current_player: int
    status: StatusModel
    ply: int
    history: list[str]
    player_types: list[str]
    difficulty: str


class MakeMoveRequest(BaseModel):
    origin: str = Field(..., description="Cell of the moving piece, e.g. 'e2'")
    destination: str = Field(..., description="Target cell, e.g. 'e3'")


class PieceActionsResponse(BaseModel):
    cell: str
    key: str
    steps: list[str]
    captures: list[str]


class AIMoveRequest(BaseModel):
    difficulty: Optional[str] = None  # Defaults to the game's difficulty


class AIMoveResponse(BaseModel):
    move: str
    notation: str
    value: Optional[float] = None  # None when the search found a forced result or moved randomly
    forced: Optional[str] = None   # "win" or "loss" when the search value is infinite
    nodes: int
    time_ms: int
    random: bool
    game_state: GameStateResponse


class UndoRequest(BaseModel):
    moves: int = 1


class RecordResponse(BaseModel):
    game_id: str
    text: str


class HealthResponse(BaseModel):
    status: str
    version: str


# --- Game Storage ---

class GameSession:
    """Represents an active game session."""

    def __init__(
        self,
        game_id: str,
        player1_type: str = "human",
        player2_type: str = "ai",
        difficulty: str = "moderate",
        record: Optional[GameRecord] = None
    ):
        self.game_id = game_id
        self.game = Game(record)
        self.player_types = [player1_type, player2_type]
        self.difficulty = Difficulty.parse(difficulty)
        self.engine = SearchEngine(config=SearchConfig())
        # Held while the engine searches; one search per game at a time
        self.ai_lock = asyncio.Lock()
        self.websockets: list[WebSocket] = []

    def to_response(self) -> GameStateResponse:
        """Convert to API response."""
        state = self.game.state
        status = self.game.status
        return GameStateResponse(
            game_id=self.game_id,
            pieces=[
                PieceModel(
                    key=p.key,
                    kind=p.kind.value,
                    player=p.player,
                    cell=position_to_notation(p.pos),
                    row=p.pos[0],
                    col=p.pos[1]
                )
                for p in state.pieces
            ],
            board=state.to_array().tolist(),
            current_player=state.current_player,
            status=StatusModel(kind=status.kind.value, winner=status.winner, reason=status.reason),
            ply=self.game.ply,
            history=history_lines(self.game.record),
            player_types=self.player_types,
            difficulty=self.difficulty.value
        )

    def save(self) -> None:
        persistence.save_game(
            game_id=self.game_id,
            record=self.game.record,
            player1_type=self.player_types[0],
            player2_type=self.player_types[1],
            difficulty=self.difficulty.value
        )


# Global game storage
games: dict[str, GameSession] = {}


def session_from_data(game_data: dict) -> GameSession:
    return GameSession(
        game_id=game_data["game_id"],
        player1_type=game_data["player1_type"],
        player2_type=game_data["player2_type"],
        difficulty=game_data["difficulty"],
        record=game_data["record"]
    )


def get_session(game_id: str) -> GameSession:
    """Find a session, loading it from the database if it is not in memory."""
    if game_id in games:
        return games[game_id]

    try:
        game_data = persistence.load_game(game_id)
    except (KvintiError, ValueError) as e:
        logger.warning(f"Cannot load game {game_id}: {e}")
        game_data = None
    if game_data is None:
        raise HTTPException(status_code=404, detail="Game not found")

    session = session_from_data(game_data)
    games[game_id] = session
    logger.info(f"Loaded game {game_id} from database")
    return session


def parse_cell(cell: str):
    try:
        return notation_to_position(cell)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid cell: {cell}")


def parse_difficulty(name: str) -> Difficulty:
    try:
        return Difficulty.parse(name)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown difficulty: {name}")


def play_move(session: GameSession, origin: str, destination: str) -> None:
    """Apply a human move, mapping rule errors to HTTP errors."""
    try:
        session.game.play(parse_cell(origin), parse_cell(destination))
    except GameOverError:
        raise HTTPException(status_code=409, detail="Game already finished")
    except IllegalActionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    session.save()


def check_current(session: GameSession, generation: int) -> None:
    """Reject a pending result if the game was deleted or changed meanwhile."""
    if games.get(session.game_id) is not session:
        raise HTTPException(status_code=409, detail="Game was deleted while AI was thinking")
    if session.game.generation != generation:
        raise HTTPException(status_code=409, detail="Game changed while AI was thinking")


async def compute_ai_move(session: GameSession, difficulty: Difficulty) -> tuple[Action, SearchStats]:
    """
    Let the engine pick and apply a move for the side to move.

    Only one search runs per game; a second request while it runs gets 409.
    The result is discarded if the game changed or was deleted while the
    engine was thinking.
    """
    game = session.game
    if game.is_over:
        raise HTTPException(status_code=409, detail="Game already finished")
    if session.ai_lock.locked():
        raise HTTPException(status_code=409, detail="AI is already thinking")

    async with session.ai_lock:
        generation = game.generation
        side = game.state.current_player

        if AI_DELAY > 0:
            await asyncio.sleep(AI_DELAY)
            check_current(session, generation)

        action = await asyncio.to_thread(
            game.request_computer_move, session.engine, side, difficulty
        )
        check_current(session, generation)
        if action is None:
            raise HTTPException(status_code=409, detail="No legal move available")

        if not game.apply_if_current(action, generation):
            raise HTTPException(status_code=409, detail="Game changed while AI was thinking")
        stats = session.engine.last_stats

    session.save()
    logger.info(f"Game {session.game_id}: AI ({difficulty.value}) played {action_to_algebraic(action)}")
    return action, stats


def finite_or_none(value: Optional[float]) -> Optional[float]:
    if value is None or math.isinf(value):
        return None
    return value


# --- App Setup ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    """App lifespan handler."""
    # Startup: initialize database and load existing games
    persistence.init_db()
    persistence.cleanup_old_games(max_age_days=7)

    for game_data in persistence.load_all_games():
        session = session_from_data(game_data)
        games[session.game_id] = session
        logger.info(f"Loaded game {session.game_id} from database")

    logger.info(f"Loaded {len(games)} games from database")

    yield

    games.clear()


app = FastAPI(
    title="Kvinti Engine",
    description="Game engine API for the Kvinti board game",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- REST Endpoints ---

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="ok", version=__version__)


@app.post("/games", response_model=CreateGameResponse)
async def create_game(request: CreateGameRequest = None):
    """Create a new game."""
    if request is None:
        request = CreateGameRequest()

    parse_difficulty(request.difficulty)

    game_id = str(uuid.uuid4())[:8]
    session = GameSession(
        game_id=game_id,
        player1_type=request.player1_type,
        player2_type=request.player2_type,
        difficulty=request.difficulty
    )
    games[game_id] = session
    session.save()

    return CreateGameResponse(game_id=game_id)


@app.post("/games/import", response_model=CreateGameResponse)
async def import_game(request: ImportGameRequest):
    """Create a game by replaying an exported record. Player types come from its tags."""
    parse_difficulty(request.difficulty)
    try:
        record = record_from_text(request.text)
    except (KvintiError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid record: {e}")

    tags = parse_tags(request.text)
    game_id = str(uuid.uuid4())[:8]
    session = GameSession(
        game_id=game_id,
        player1_type=tags.get("white", "human"),
        player2_type=tags.get("black", "ai"),
        difficulty=request.difficulty,
        record=record
    )
    games[game_id] = session
    session.save()
    logger.info(f"Imported game {game_id} with {session.game.ply} moves")

    return CreateGameResponse(game_id=game_id)


@app.get("/games/{game_id}", response_model=GameStateResponse)
async def get_game(game_id: str):
    """Get current game state."""
    return get_session(game_id).to_response()


@app.delete("/games/{game_id}")
async def delete_game(game_id: str):
    """Delete a game. A computer move still being searched for it is discarded."""
    session = get_session(game_id)
    games.pop(game_id)
    session.game.invalidate()
    persistence.delete_game(game_id)
    return {"deleted": game_id}


@app.get("/games/{game_id}/actions/{cell}", response_model=PieceActionsResponse)
async def get_piece_actions(game_id: str, cell: str):
    """Get step and capture destinations of the piece on a cell."""
    session = get_session(game_id)
    pos = parse_cell(cell)
    piece = session.game.state.piece_at(pos)
    if piece is None:
        raise HTTPException(status_code=404, detail=f"No piece on {cell}")

    actions = session.game.legal_actions(pos)
    return PieceActionsResponse(
        cell=position_to_notation(pos),
        key=piece.key,
        steps=[position_to_notation(p) for p in actions.steps],
        captures=[position_to_notation(p) for p in actions.captures]
    )


@app.post("/games/{game_id}/move", response_model=GameStateResponse)
async def make_move(game_id: str, request: MakeMoveRequest):
    """Make a move in the game."""
    session = get_session(game_id)
    play_move(session, request.origin, request.destination)

    response = session.to_response()
    await broadcast_state(session, response)
    return response


@app.post("/games/{game_id}/ai", response_model=AIMoveResponse)
async def get_ai_move(game_id: str, request: AIMoveRequest = None):
    """Get the computer to choose and play a move for the side to move."""
    if request is None:
        request = AIMoveRequest()

    session = get_session(game_id)
    difficulty = parse_difficulty(request.difficulty) if request.difficulty else session.difficulty

    before = session.game.state
    start_time = time.time()
    action, stats = await compute_ai_move(session, difficulty)
    elapsed_ms = int((time.time() - start_time) * 1000)

    forced = None
    if stats.value is not None and math.isinf(stats.value):
        forced = "win" if stats.value > 0 else "loss"

    game_response = session.to_response()
    await broadcast_state(session, game_response)

    return AIMoveResponse(
        move=action_to_algebraic(action),
        notation=action_to_notation(before, action),
        value=finite_or_none(stats.value),
        forced=forced,
        nodes=stats.nodes,
        time_ms=elapsed_ms,
        random=stats.random,
        game_state=game_response
    )


@app.post("/games/{game_id}/undo", response_model=GameStateResponse)
async def undo_move(game_id: str, request: UndoRequest = None):
    """Take back moves (default one)."""
    if request is None:
        request = UndoRequest()

    session = get_session(game_id)
    if request.moves < 1 or request.moves > session.game.ply:
        raise HTTPException(status_code=400, detail="Nothing to undo")

    session.game.undo(request.moves)
    session.save()

    response = session.to_response()
    await broadcast_state(session, response)
    return response


@app.get("/games/{game_id}/record", response_model=RecordResponse)
async def get_record(game_id: str):
    """Export the game as PGN-like text."""
    session = get_session(game_id)
    text = record_to_text(
        session.game.record,
        white=session.player_types[0],
        black=session.player_types[1],
        status=session.game.status
    )
    return RecordResponse(game_id=game_id, text=text)


# --- WebSocket ---

async def broadcast_state(session: GameSession, state: GameStateResponse):
    """Broadcast state update to all connected clients."""
    message = {
        "type": "state",
        "data": state.model_dump()
    }
    disconnected = []
    for ws in session.websockets:
        try:
            await ws.send_json(message)
        except Exception:
            disconnected.append(ws)

    for ws in disconnected:
        session.websockets.remove(ws)


async def send_error(ws: WebSocket, message: str, code: str):
    """Send error message to client."""
    await ws.send_json({
        "type": "error",
        "data": {"message": message, "code": code}
    })


async def send_game_over(ws: WebSocket, session: GameSession):
    status = session.game.status
    await ws.send_json({
        "type": "game_over",
        "data": {"status": status.kind.value, "winner": status.winner, "reason": status.reason}
    })


@app.websocket("/games/{game_id}/ws")
async def websocket_endpoint(websocket: WebSocket, game_id: str):
    """WebSocket endpoint for real-time game updates."""
    try:
        session = get_session(game_id)
    except HTTPException:
        await websocket.close(code=4004, reason="Game not found")
        return

    await websocket.accept()
    session.websockets.append(websocket)

    await websocket.send_json({
        "type": "state",
        "data": session.to_response().model_dump()
    })

    try:
        while True:
            data = await websocket.receive_json()
            payload = None
            if isinstance(data, dict):
                payload = data.get("data") or {}
            if not isinstance(payload, dict):
                await send_error(websocket, "Message must be an object with an object payload", "INVALID_REQUEST")
                continue
            msg_type = data.get("type")

            if msg_type == "move":
                origin = payload.get("origin")
                destination = payload.get("destination")
                if not isinstance(origin, str) or not isinstance(destination, str):
                    await send_error(websocket, "Move needs origin and destination cells", "INVALID_REQUEST")
                    continue
                try:
                    play_move(session, origin, destination)
                except HTTPException as e:
                    code = "GAME_FINISHED" if e.status_code == 409 else "INVALID_MOVE"
                    await send_error(websocket, e.detail, code)
                    continue

            elif msg_type == "ai_move":
                name = payload.get("difficulty")
                if name is not None and not isinstance(name, str):
                    await send_error(websocket, "Difficulty must be a string", "INVALID_REQUEST")
                    continue
                try:
                    difficulty = parse_difficulty(name) if name else session.difficulty
                    await compute_ai_move(session, difficulty)
                except HTTPException as e:
                    await send_error(websocket, e.detail, "AI_UNAVAILABLE")
                    continue

            elif msg_type == "undo":
                if session.game.ply == 0:
                    await send_error(websocket, "Nothing to undo", "INVALID_REQUEST")
                    continue
                session.game.undo()
                session.save()

            else:
                await send_error(websocket, f"Unknown message type: {msg_type}", "INVALID_REQUEST")
                continue

            await broadcast_state(session, session.to_response())
            if session.game.is_over:
                await send_game_over(websocket, session)

    except WebSocketDisconnect:
        pass
    finally:
        if websocket in session.websockets:
            session.websockets.remove(websocket)


# --- Entry Point ---

def run_server(host: str = "0.0.0.0", port: int = 8000):
    """Run the server."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
