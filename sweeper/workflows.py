"""Temporal workflows driving live and replayed sessions."""
import asyncio
from datetime import timedelta
from temporalio import workflow
from temporalio.exceptions import ActivityError, ApplicationError

with workflow.unsafe.imports_passed_through():
    from sweeper.types import (
        Action,
        ActionRequest,
        GameConfig,
        GameSession,
        GameStatus,
        ReplayOutcome,
        ReplaySummary,
        StepResult,
    )
    from sweeper.activities import (
        apply_action,
        create_replay_session,
        create_session,
        load_demo,
        save_demo,
    )
    from sweeper.demo import build_demo, step_outcome
    from sweeper.recorder import SessionRecorder

ACTIVITY_TIMEOUT = timedelta(seconds=60)
INACTIVITY_TIMEOUT = timedelta(hours=24)
CHECK_INTERVAL = timedelta(minutes=1)


def _rejection(error: ActivityError) -> ApplicationError:
    cause = error.cause
    if isinstance(cause, ApplicationError):
        return ApplicationError(cause.message, type=cause.type, non_retryable=True)
    return ApplicationError(str(error), non_retryable=True)


@workflow.defn
class GameWorkflow:
    """Workflow that owns and records a single live session."""

    def __init__(self):
        self.game_id: str = ""
        self.recorder: SessionRecorder | None = None
        self.last_activity_time: float = 0
        self.should_close: bool = False

    @workflow.run
    async def run(self, game_id: str, config: GameConfig) -> None:
        """Main workflow entry point."""
        # Store game_id immediately so queries can access it during initialization
        self.game_id = game_id
        self.last_activity_time = workflow.time()

        session = await workflow.execute_activity(
            create_session,
            config,
            start_to_close_timeout=ACTIVITY_TIMEOUT,
        )
        # The initial draw is the log's sentinel; delays count from here.
        self.recorder = SessionRecorder(session, workflow.time())

        while not self.should_close:
            await workflow.wait_condition(
                lambda: self.should_close or
                       (workflow.time() - self.last_activity_time) >= INACTIVITY_TIMEOUT.total_seconds(),
                timeout=CHECK_INTERVAL.total_seconds()
            )

            if self.should_close:
                break

            if (workflow.time() - self.last_activity_time) >= INACTIVITY_TIMEOUT.total_seconds():
                workflow.logger.info(f"Game {game_id} auto-closing due to inactivity")
                break

        if self.recorder.session.status == GameStatus.IN_PROGRESS:
            self.recorder.session.status = GameStatus.CLOSED

        workflow.logger.info(f"Game workflow {game_id} completed with {len(self.recorder.log)} recorded actions")

    async def _apply(self, session: GameSession, action: Action) -> StepResult:
        return await workflow.execute_activity(
            apply_action,
            args=[session, action],
            start_to_close_timeout=ACTIVITY_TIMEOUT,
        )

    @workflow.update
    async def apply_action_update(self, request: ActionRequest) -> GameSession:
        """Apply a live action, record it, and return the updated session."""
        if not self.recorder:
            raise ApplicationError("Session not initialized", non_retryable=True)

        self.last_activity_time = workflow.time()
        try:
            result = await self.recorder.submit(request, workflow.time, self._apply)
        except ActivityError as error:
            workflow.logger.warning(f"Rejected {request.type.name} at ({request.x}, {request.y}): {error.cause}")
            raise _rejection(error) from error

        if result.quit:
            self.should_close = True
        elif result.session.is_over:
            workflow.logger.info(f"Game {self.game_id} finished: {result.session.status.value}")

        return result.session

    @workflow.update
    async def save_demo_update(self, path: str) -> int:
        """Write the recording so far to ``path`` and return its size."""
        if not self.recorder:
            raise ApplicationError("Session not initialized", non_retryable=True)

        self.last_activity_time = workflow.time()
        demo = build_demo(self.recorder.session.board, self.recorder.log)
        try:
            return await workflow.execute_activity(
                save_demo,
                args=[demo, path],
                start_to_close_timeout=ACTIVITY_TIMEOUT,
            )
        except ActivityError as error:
            workflow.logger.warning(f"Could not save demo to {path}: {error.cause}")
            raise _rejection(error) from error

    @workflow.signal
    def close_game_signal(self) -> None:
        """Signal to close the game."""
        self.should_close = True

    @workflow.query
    def get_session_query(self) -> GameSession | None:
        """Query the current session; None while the board is being created."""
        return self.recorder.session if self.recorder else None


@workflow.defn
class ReplayWorkflow:
    """Workflow that replays a demo file with its recorded timing."""

    def __init__(self):
        self.replay_id: str = ""
        self.session: GameSession | None = None
        self.steps: int = 0

    @workflow.run
    async def run(self, replay_id: str, path: str) -> ReplaySummary:
        self.replay_id = replay_id

        # A corrupt or missing demo fails the workflow: replay cannot start.
        try:
            demo = await workflow.execute_activity(
                load_demo,
                path,
                start_to_close_timeout=ACTIVITY_TIMEOUT,
            )
        except ActivityError as error:
            workflow.logger.warning(f"Could not load demo {path}: {error.cause}")
            raise _rejection(error) from error
        self.session = await workflow.execute_activity(
            create_replay_session,
            demo,
            start_to_close_timeout=ACTIVITY_TIMEOUT,
        )
        workflow.logger.info(f"Replaying {len(demo.log)} actions from {path}")

        outcome = ReplayOutcome.EXHAUSTED
        for action in demo.log.iterate():
            if action.pre_delay > 0:
                await asyncio.sleep(action.pre_delay)

            try:
                result = await workflow.execute_activity(
                    apply_action,
                    args=[self.session, action],
                    start_to_close_timeout=ACTIVITY_TIMEOUT,
                )
            except ActivityError as error:
                workflow.logger.warning(f"Replayed {action.type.name} rejected: {error.cause}")
                self.steps += 1
                continue

            self.session = result.session
            self.steps += 1

            step = step_outcome(result)
            if step is not None:
                outcome = step
                break

        message = "no more actions" if outcome == ReplayOutcome.EXHAUSTED else None
        workflow.logger.info(f"Replay {replay_id} finished: {outcome.value} after {self.steps} actions")
        return ReplaySummary(
            outcome=outcome,
            status=self.session.status,
            steps=self.steps,
            message=message,
        )

    @workflow.query
    def get_session_query(self) -> GameSession | None:
        return self.session
