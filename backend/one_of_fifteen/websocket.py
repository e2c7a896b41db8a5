import logging

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .errors import GameError
from .game import GameSession
from .hub import Connection
from .schemas import (
    BuzzInIn,
    ErrorOut,
    GetStateIn,
    IdentifyIn,
    IncomingMessage,
    JoinContestantIn,
    JoinPresenterIn,
    LeaveIn,
    MakeDecisionIn,
    PointToPlayerIn,
    ResetGameIn,
    StartGameIn,
    SubmitAnswerIn,
    ToggleReadyIn,
    WelcomeOut,
    parse_incoming,
)

logger = logging.getLogger(__name__)


class GameSocketHandler:
    """Runs one client connection against a game session."""

    def __init__(self, websocket: WebSocket, session: GameSession):
        self.websocket = websocket
        self.session = session
        self.conn = Connection(websocket.send_text)

    async def run(self) -> None:
        await self.websocket.accept()
        self.session.hub.add(self.conn)
        self.conn.start()
        logger.debug("Connection %s opened on game %s", self.conn.id, self.session.game_id)

        try:
            async for raw in self.websocket.iter_text():
                await self.handle(raw)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("WebSocket error on connection %s (session %s)", self.conn.id, self.conn.session_id)
        finally:
            logger.debug("Connection %s closed (session %s)", self.conn.id, self.conn.session_id)
            self.session.hub.remove(self.conn)
            await self.conn.close()
            await self.session.disconnect(self.conn.session_id)

    async def handle(self, raw: str) -> None:
        try:
            msg = parse_incoming(raw)
        except ValidationError as e:
            logger.debug("Malformed message on connection %s: %s", self.conn.id, e)
            self.conn.push(ErrorOut(message="Invalid message format"))
            return

        try:
            await self._dispatch(msg)
        except GameError as e:
            logger.debug("Rejected %s from %s: %s", msg.type, self.conn.session_id, e)
            self.conn.push(ErrorOut(message=str(e)))

    async def _dispatch(self, msg: IncomingMessage) -> None:
        session = self.session
        sid = self.conn.session_id

        if isinstance(msg, IdentifyIn):
            previous = self.conn.session_id
            self.conn.session_id = msg.session_id
            if previous and previous != msg.session_id:
                await session.disconnect(previous)
            role = await session.identify(msg.session_id)
            self.conn.push(WelcomeOut(role=role))
            self.conn.push(session.get_state())
        elif isinstance(msg, GetStateIn):
            self.conn.push(session.get_state())
        elif isinstance(msg, JoinPresenterIn):
            self.conn.push(WelcomeOut(role=await session.join_presenter(sid)))
        elif isinstance(msg, JoinContestantIn):
            self.conn.push(WelcomeOut(role=await session.join_contestant(sid, msg.name, msg.age)))
        elif isinstance(msg, LeaveIn):
            await session.leave(sid)
            self.conn.session_id = None
            self.conn.push(WelcomeOut(role=None))
        elif isinstance(msg, ToggleReadyIn):
            await session.toggle_ready(sid)
        elif isinstance(msg, StartGameIn):
            await session.start_game(sid)
        elif isinstance(msg, ResetGameIn):
            await session.reset_game(sid)
        elif isinstance(msg, PointToPlayerIn):
            await session.point_to_player(sid, msg.target_id)
        elif isinstance(msg, BuzzInIn):
            await session.buzz_in(sid)
        elif isinstance(msg, MakeDecisionIn):
            await session.make_decision(sid, msg.choice, msg.target_id)
        elif isinstance(msg, SubmitAnswerIn):
            await session.submit_answer(sid, msg.answer)


async def serve_game_socket(websocket: WebSocket, session: GameSession) -> None:
    await GameSocketHandler(websocket, session).run()
