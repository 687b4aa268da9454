"""Live action recording for a single session."""
import asyncio
from typing import Awaitable, Callable

from sweeper.types import Action, ActionLog, ActionRequest, GameSession, StepResult

ApplyFn = Callable[[GameSession, Action], Awaitable[StepResult]]


class SessionRecorder:
    """Applies live actions one at a time and logs the accepted ones.

    The lock spans reading the session, applying the action and appending to
    the log, so concurrent submissions never start from the same state.
    A rejected action raises out of :meth:`submit` and is not logged.
    """

    def __init__(self, session: GameSession, start_time: float):
        self.session = session
        self.log = ActionLog()
        self.last_action_time = start_time
        self._lock = asyncio.Lock()

    def build_action(self, request: ActionRequest, now: float) -> Action:
        return Action(
            type=request.type,
            pre_delay=max(now - self.last_action_time, 0.0),
            x=request.x,
            y=request.y,
        )

    async def submit(self, request: ActionRequest, clock: Callable[[], float], apply: ApplyFn) -> StepResult:
        async with self._lock:
            if self.session.is_over:
                return StepResult(
                    session=self.session,
                    action=Action(type=request.type, x=request.x, y=request.y),
                )

            now = clock()
            action = self.build_action(request, now)
            result = await apply(self.session, action)

            self.session = result.session
            self.log.append(action)
            self.last_action_time = now
            return result
