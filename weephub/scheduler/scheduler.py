"""
Routine Scheduler

Evaluates time and interval triggers on a periodic tick and launches routine
runs as detached tasks. The tick only decides and launches; it never waits for
remote device calls.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..core.database import ActivityLogger
from ..core.errors import PersistenceError
from ..core.models import (
    DEFAULT_INTERVAL_MS,
    DispatchResult,
    IntervalTrigger,
    Routine,
    TimeTrigger,
    ToggleAction,
    clamp_every_minutes,
    clamp_interval_ms,
    now_ms,
)
from ..core.routines import RoutineStore
from ..devices.dispatcher import CommandDispatcher

logger = logging.getLogger(__name__)


def slot_key(now: datetime) -> str:
    """Calendar day plus minute, e.g. '2026-10-19 07:30'"""
    return now.strftime("%Y-%m-%d %H:%M")


def weekday_of(now: datetime) -> int:
    """Weekday with 0=Sunday through 6=Saturday"""
    return (now.weekday() + 1) % 7


def matches_time_trigger(trigger: TimeTrigger, now: datetime) -> bool:
    if trigger.weekdays and weekday_of(now) not in trigger.weekdays:
        return False
    return now.strftime("%H:%M") == trigger.time


def interval_due(trigger: IntervalTrigger, last_run_at: Optional[int], current_ms: int) -> bool:
    """An unset last run counts as infinitely overdue"""
    if last_run_at is None:
        return True
    return current_ms - last_run_at >= clamp_every_minutes(trigger.every_minutes) * 60000


def action_label(routine: Routine, action) -> str:
    return action.device_name or routine.name or action.device_id


class RoutineScheduler:
    """
    Runs routines when their triggers fire.

    Features:
    - Single repeating timer, interval reconfigurable at runtime
    - Per-minute duplicate suppression for time triggers (run tracker)
    - Detached, concurrency-bounded routine runs
    - Sequential actions within a routine; one failing action never stops the rest
    """

    def __init__(
        self,
        routines: RoutineStore,
        dispatcher: CommandDispatcher,
        activity: Optional[ActivityLogger] = None,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        max_concurrent: int = 8,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.routines = routines
        self.dispatcher = dispatcher
        self.activity = activity
        self.interval_ms = clamp_interval_ms(interval_ms)
        self._clock = clock
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None
        self._run_tasks: Set[asyncio.Task] = set()
        self._semaphore = asyncio.Semaphore(max_concurrent)
        # routine_id -> (last fired slot key, routine updated_at at that time)
        self._run_tracker: Dict[str, Tuple[str, int]] = {}

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        logger.info(f"Starting scheduler (interval {self.interval_ms} ms)...")

        # Slots that fired before a restart must not fire again
        for routine in self.routines.list():
            if routine.last_slot_key:
                self._run_tracker[routine.id] = (routine.last_slot_key, routine.updated_at)

        self._running = True
        self._loop_task = asyncio.create_task(self._schedule_loop())

        logger.info("Scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler and wait for in-flight routine runs."""
        if not self._running:
            return

        logger.info("Stopping scheduler...")
        self._running = False
        await self._cancel_loop()

        await self.drain()

        logger.info("Scheduler stopped")

    async def drain(self) -> None:
        """Wait until every launched routine run has finished."""
        while self._run_tasks:
            logger.info(f"Waiting for {len(self._run_tasks)} routine runs to finish")
            await asyncio.gather(*list(self._run_tasks), return_exceptions=True)

    async def _cancel_loop(self) -> None:
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

    async def set_interval(self, interval_ms: int) -> int:
        """
        Change the tick interval.

        A running timer is cancelled and restarted, which runs one evaluation
        pass immediately.
        """
        self.interval_ms = clamp_interval_ms(interval_ms)
        logger.info(f"Scheduler interval set to {self.interval_ms} ms")

        if self._running:
            await self._cancel_loop()
            self._loop_task = asyncio.create_task(self._schedule_loop())

        return self.interval_ms

    async def _schedule_loop(self) -> None:
        """Main routine checking loop."""
        logger.info("Routine loop started")

        while self._running:
            try:
                self.evaluate()
                await asyncio.sleep(self.interval_ms / 1000)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in routine loop: {e}", exc_info=True)
                await asyncio.sleep(self.interval_ms / 1000)

        logger.info("Routine loop stopped")

    # =========================================================================
    # Evaluation
    # =========================================================================

    def _check_routine(self, routine: Routine, now: datetime, current_ms: int) -> Optional[Dict[str, Any]]:
        """Return run bookkeeping if the routine fires now, else None."""
        trigger = routine.trigger

        if isinstance(trigger, TimeTrigger):
            if not matches_time_trigger(trigger, now):
                return None
            key = slot_key(now)
            fired = self._run_tracker.get(routine.id)
            if fired and routine.last_slot_key is None and routine.updated_at != fired[1]:
                # Trigger was replaced since that fire
                fired = None
            if fired and fired[0] == key:
                return None
            self._run_tracker[routine.id] = (key, routine.updated_at)
            return {"last_run_at": current_ms, "last_slot_key": key}

        if isinstance(trigger, IntervalTrigger):
            if interval_due(trigger, routine.last_run_at, current_ms):
                return {"last_run_at": current_ms}

        return None

    def evaluate(self, now: Optional[datetime] = None) -> List[str]:
        """
        Run one evaluation pass.

        Decides which enabled routines fire, stamps their bookkeeping in a single
        store rewrite and launches their runs without waiting for them.

        Returns:
            Ids of the routines that fired
        """
        now = now or self._clock()
        current_ms = int(now.timestamp() * 1000)

        routines = self.routines.list()
        known_ids = {r.id for r in routines}
        for stale in set(self._run_tracker) - known_ids:
            del self._run_tracker[stale]

        fired: List[Routine] = []
        stamps: Dict[str, Dict[str, Any]] = {}

        for routine in routines:
            if not routine.enabled:
                continue
            try:
                stamp = self._check_routine(routine, now, current_ms)
            except Exception as e:
                logger.error(f"Error evaluating routine {routine.id}: {e}")
                continue
            if stamp:
                fired.append(routine)
                stamps[routine.id] = stamp

        if not fired:
            return []

        try:
            self.routines.mark_run(stamps)
        except PersistenceError as e:
            logger.error(f"Could not persist run bookkeeping: {e}")

        for routine in fired:
            logger.info(f"Routine '{routine.name}' fired ({type(routine.trigger).__name__})")
            self._launch(routine)

        return [r.id for r in fired]

    def _launch(self, routine: Routine) -> None:
        task = asyncio.create_task(self._run_detached(routine), name=f"routine-{routine.id}")
        self._run_tasks.add(task)
        task.add_done_callback(self._run_tasks.discard)

    async def _run_detached(self, routine: Routine) -> None:
        async with self._semaphore:
            try:
                results = await self.execute_routine(routine)
            except Exception as e:
                logger.error(f"Routine '{routine.name}' run crashed: {e}", exc_info=True)
                return

        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(f"Routine '{routine.name}' finished with {failed}/{len(results)} failed actions")
        else:
            logger.info(f"Routine '{routine.name}' finished ({len(results)} actions)")

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_routine(self, routine: Routine) -> List[DispatchResult]:
        """Run every action in order and collect one result per action."""
        results: List[DispatchResult] = []

        for action in routine.actions:
            try:
                if isinstance(action, ToggleAction):
                    outcome = await self.dispatcher.toggle(
                        action.device_id, action.on, action.source_id
                    )
                else:
                    outcome = await self.dispatcher.run_command(
                        action.device_id,
                        action.capability,
                        action.command,
                        action.arguments,
                        source_id=action.source_id,
                        component=action.component
                    )
            except Exception as e:
                logger.error(
                    f"Routine '{routine.name}' action {action.id} "
                    f"({action.descriptor} on {action.device_id}) failed: {e}"
                )
                results.append(DispatchResult(ok=False, action_id=action.id, error=str(e)))
                continue

            results.append(DispatchResult(ok=True, action_id=action.id, state=outcome.state))
            if self.activity:
                await self.activity.record(action_label(routine, action), action.descriptor)

        return results

    async def run_now(self, routine_id: str) -> List[DispatchResult]:
        """
        Execute a routine immediately, ignoring its trigger and enabled flag.

        Raises:
            NotFoundError: unknown routine id
        """
        routine = self.routines.get(routine_id)
        logger.info(f"Running routine '{routine.name}' on demand")

        results = await self.execute_routine(routine)

        try:
            self.routines.mark_run({routine.id: {"last_run_at": now_ms()}})
        except PersistenceError as e:
            logger.error(f"Could not persist run of routine {routine.id}: {e}")

        return results

    def get_status(self) -> Dict[str, Any]:
        """Get scheduler status."""
        routines = self.routines.list()
        return {
            "running": self._running,
            "interval_ms": self.interval_ms,
            "routines": len(routines),
            "enabled_routines": sum(1 for r in routines if r.enabled),
            "in_flight_runs": len(self._run_tasks),
            "last_fired_slots": {rid: slot for rid, (slot, _) in self._run_tracker.items()},
        }
