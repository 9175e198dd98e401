"""
Tracking session controller.

A TrackingSession drives the live view of one delivery: it owns the single
recurring simulation timer and, per tick, advances the courier, re-rolls
traffic, refreshes the ETA and the countdown. Position writes are
fire-and-forget; arrival hands over to the state machine.

TrackingSessionManager keeps one session per actively viewed delivery and
tears them all down on shutdown.
"""

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Awaitable, Dict, Optional, Set

from medcourier.config import get_settings
from medcourier.core.events import (
    TrackingEventBus,
    TrackingEventType,
    make_tracking_event,
    tracking_event_bus,
)
from medcourier.core.exceptions import (
    DeliveryNotFoundError,
    ResetError,
    TrackingError,
)
from medcourier.core.scheduler import AsyncioScheduler, Scheduler, TimerHandle
from medcourier.models import DeliveryStatus
from medcourier.services.countdown import CountdownTracker
from medcourier.services.eta import EtaEstimate, detailed_status, estimate
from medcourier.services.geo import Coordinate
from medcourier.services.simulator import PositionSimulator, StepKind, write_position
from medcourier.services.status_machine import DeliveryStateMachine
from medcourier.services.store import DeliverySnapshot, TrackingStore
from medcourier.services.traffic import TrafficCondition, TrafficModel

logger = logging.getLogger(__name__)


class SimulationSpeed(str, enum.Enum):
    """Tick rate of the simulation."""
    SLOW = "slow"
    NORMAL = "normal"
    FAST = "fast"

    @property
    def interval_seconds(self) -> float:
        return get_settings().tracking_interval_ms[self.value] / 1000


@dataclass(frozen=True)
class TrackingSessionState:
    """Point-in-time view of a session, as served to viewers."""
    delivery_id: uuid.UUID
    status: DeliveryStatus
    is_live_tracking: bool
    simulation_speed: SimulationSpeed
    traffic_condition: TrafficCondition
    current: Optional[Coordinate]
    eta: Optional[EtaEstimate]
    detailed_status: str
    eta_start: Optional[float]
    eta_end: Optional[float]
    eta_countdown_seconds: Optional[int]
    eta_progress_percent: float


class TrackingSession:
    """
    Live tracking controller for a single delivery.

    At most one recurring timer is armed at any time: start() is a no-op
    while the timer handle is present, and change_speed() replaces the timer
    synchronously. stop() clears the handle before returning, so no tick can
    fire afterwards.
    """

    def __init__(
        self,
        delivery_id: uuid.UUID,
        store: TrackingStore,
        state_machine: DeliveryStateMachine,
        scheduler: Optional[Scheduler] = None,
        event_bus: Optional[TrackingEventBus] = None,
        traffic: Optional[TrafficModel] = None,
        simulator: Optional[PositionSimulator] = None,
        speed: SimulationSpeed = SimulationSpeed.NORMAL,
    ) -> None:
        self.delivery_id = delivery_id
        self.store = store
        self.state_machine = state_machine
        self.scheduler = scheduler or AsyncioScheduler()
        self.event_bus = event_bus or tracking_event_bus
        self.traffic = traffic or TrafficModel()
        self.simulator = simulator or PositionSimulator()
        self.speed = SimulationSpeed(speed)

        self.delivery: Optional[DeliverySnapshot] = None
        self.eta: Optional[EtaEstimate] = None
        self.detailed_status = ""
        self.countdown = CountdownTracker()

        self._timer: Optional[TimerHandle] = None
        self._restart: Optional[TimerHandle] = None
        self._pending: Set[asyncio.Task] = set()
        self._completing = False
        self._held = False
        self._closed = False

    # ==================== Lifecycle ====================

    @property
    def is_live(self) -> bool:
        return self._timer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "TrackingSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def close(self) -> None:
        """Stop for good; the session ignores later observations."""
        self.stop()
        self._closed = True

    async def aclose(self) -> None:
        self.close()
        await self.drain()

    async def drain(self) -> None:
        """Wait for in-flight background writes to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ==================== External state ====================

    async def refresh(self) -> TrackingSessionState:
        """Reload the delivery from the store and observe it."""
        delivery = await self.store.get_delivery(self.delivery_id)
        if delivery is None:
            raise DeliveryNotFoundError(self.delivery_id)
        self.observe(delivery)
        return self.state()

    def observe(self, delivery: DeliverySnapshot) -> None:
        """
        Reconcile with a freshly read delivery.

        While live, the in-memory position wins over the stored one. An
        in-progress delivery without a live session starts one at the
        last-used speed unless a viewer paused it; leaving in_progress stops
        the session and clears the ETA window.
        """
        if self._closed:
            return
        if self._completing and delivery.status == DeliveryStatus.IN_PROGRESS:
            # Stale read taken before our own completion was persisted
            return

        if (
            self.delivery is not None
            and self.is_live
            and delivery.status == DeliveryStatus.IN_PROGRESS
        ):
            delivery = replace(delivery, current=self.delivery.current)
        self.delivery = delivery

        if delivery.status != DeliveryStatus.IN_PROGRESS:
            self.stop()
            self._refresh_estimates()
            return

        if self.is_live:
            self._refresh_estimates()
        elif self._restart is None and not self._held:
            self.start(self.speed)

    # ==================== Controls ====================

    def start(self, speed: Optional[SimulationSpeed] = None) -> bool:
        """
        Start simulating at ``speed``.

        Picks the initial traffic condition, runs one immediate estimate
        pass and arms the recurring timer.

        Returns:
            False when a session was already running or the delivery
            is not in progress (no-op)
        """
        if self._closed:
            raise TrackingError(f"Tracking session for {self.delivery_id} is closed")
        if self._timer is not None:
            return False
        if self.delivery is None:
            raise TrackingError(f"Delivery {self.delivery_id} has not been loaded")
        if self.delivery.status != DeliveryStatus.IN_PROGRESS:
            logger.info(
                f"Not starting live tracking for {self.delivery_id}: "
                f"delivery is {self.delivery.status.value}"
            )
            return False

        self._held = False
        if speed is not None:
            self.speed = SimulationSpeed(speed)
        if self._restart is not None:
            self._restart.cancel()
            self._restart = None

        self.traffic.initialize()
        self._refresh_estimates()
        self._timer = self.scheduler.call_every(self.speed.interval_seconds, self._tick)

        logger.info(
            f"Started live tracking for {self.delivery_id} "
            f"(speed={self.speed.value}, traffic={self.traffic.condition.value})"
        )
        return True

    def stop(self) -> None:
        """Cancel the timer (and any pending restart); keep the last state."""
        if self._restart is not None:
            self._restart.cancel()
            self._restart = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.info(f"Stopped live tracking for {self.delivery_id}")

    def pause(self) -> None:
        """Stop on a viewer's request; auto-start stays off until start()."""
        self.stop()
        self._held = True

    def change_speed(self, speed: SimulationSpeed) -> None:
        """Switch tick rate; a live timer is replaced, never stacked."""
        speed = SimulationSpeed(speed)
        was_live = self.is_live
        self.speed = speed
        if was_live:
            self.stop()
            self.start(speed)

    async def reset(self) -> None:
        """
        Send the courier back to the pickup point and restart shortly after.

        Raises:
            ResetError: the reset could not be persisted; nothing is restarted
        """
        self.stop()
        # Let an in-flight completion land before overwriting the status
        await self.drain()
        if self.delivery is None:
            await self.refresh()
            self.stop()

        pickup = self.delivery.pickup
        if pickup is None:
            raise ResetError(f"Delivery {self.delivery_id} has no pickup coordinate")

        try:
            await self.store.update_delivery_status(
                self.delivery_id, DeliveryStatus.IN_PROGRESS, coordinate=pickup
            )
        except TrackingError as e:
            logger.error(f"Error resetting simulation for {self.delivery_id}: {e}")
            raise ResetError("Failed to reset simulation") from e

        self.delivery = replace(self.delivery, status=DeliveryStatus.IN_PROGRESS, current=pickup)
        self.countdown.reset()
        self._publish(TrackingEventType.RESET, "Simulation reset to starting point")

        if not self._closed:
            delay = get_settings().tracking_reset_restart_delay_ms / 1000
            self._restart = self.scheduler.call_later(delay, self._restart_after_reset)

    def _restart_after_reset(self) -> None:
        self._restart = None
        if not self._closed:
            self.start(self.speed)

    # ==================== Tick ====================

    def _tick(self) -> None:
        delivery = self.delivery
        if delivery is None:
            return

        outcome = self.simulator.advance(delivery, self.traffic.condition)
        if outcome.kind == StepKind.SKIPPED:
            logger.debug(f"Tick skipped for {self.delivery_id}: {outcome.reason}")
            return
        if outcome.kind == StepKind.ARRIVED:
            self._arrive()
            return

        self.delivery = replace(delivery, current=outcome.coordinate)
        self._spawn(write_position(self.store, self.delivery_id, outcome.coordinate))

        if self.traffic.maybe_reroll():
            self._publish(
                TrackingEventType.TRAFFIC_UPDATE,
                f"Traffic Update: {self.traffic.message}",
                {"traffic_condition": self.traffic.condition.value},
            )

        self._refresh_estimates()

        if get_settings().tracking_publish_positions:
            self._publish(
                TrackingEventType.POSITION_UPDATE,
                self.detailed_status,
                {
                    "coordinate": outcome.coordinate.to_dict(),
                    "eta_minutes": self.eta.eta_minutes if self.eta else None,
                    "distance_km": self.eta.distance_km if self.eta else None,
                },
            )

    def _arrive(self) -> None:
        logger.info(f"Delivery {self.delivery_id} reached destination, stopping simulation")
        self.stop()
        self.delivery = replace(
            self.delivery,
            status=DeliveryStatus.COMPLETED,
            current=self.delivery.destination,
        )
        self._refresh_estimates()
        self._publish(TrackingEventType.ARRIVED, "Package has been delivered successfully")
        self._completing = True
        self._spawn(self._complete_delivery())

    async def _complete_delivery(self) -> None:
        try:
            await self.state_machine.complete(self.delivery_id)
        except TrackingError as e:
            logger.error(f"Failed to complete delivery {self.delivery_id}: {e}")
        finally:
            self._completing = False

    # ==================== Estimates ====================

    def _refresh_estimates(self) -> None:
        delivery = self.delivery
        if delivery.current is not None and delivery.destination is not None:
            self.eta = estimate(delivery.current, delivery.destination, self.traffic.condition)
            self.detailed_status = detailed_status(self.eta.distance_value)

        if delivery.status == DeliveryStatus.IN_PROGRESS and self.eta is not None:
            now = self.scheduler.now()
            self.countdown.begin(self.eta.eta_minutes, now)
            self.countdown.refresh(now)
        else:
            self.countdown.reset()

    def state(self) -> TrackingSessionState:
        """Current session view, with the countdown brought up to date."""
        if self.delivery is None:
            raise TrackingError(f"Delivery {self.delivery_id} has not been loaded")
        if self.delivery.status == DeliveryStatus.IN_PROGRESS:
            self.countdown.refresh(self.scheduler.now())

        return TrackingSessionState(
            delivery_id=self.delivery_id,
            status=self.delivery.status,
            is_live_tracking=self.is_live,
            simulation_speed=self.speed,
            traffic_condition=self.traffic.condition,
            current=self.delivery.current,
            eta=self.eta,
            detailed_status=self.detailed_status,
            eta_start=self.countdown.eta_start,
            eta_end=self.countdown.eta_end,
            eta_countdown_seconds=self.countdown.countdown_seconds,
            eta_progress_percent=self.countdown.progress_percent,
        )

    # ==================== Helpers ====================

    def _spawn(self, coro: Awaitable) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _publish(self, event_type: str, message: str, payload: Optional[dict] = None) -> None:
        self.event_bus.publish_nowait(
            make_tracking_event(str(self.delivery_id), event_type, message, payload)
        )


class TrackingSessionManager:
    """One TrackingSession per actively viewed delivery."""

    def __init__(
        self,
        store: TrackingStore,
        state_machine: Optional[DeliveryStateMachine] = None,
        scheduler: Optional[Scheduler] = None,
        event_bus: Optional[TrackingEventBus] = None,
    ) -> None:
        self.store = store
        self.state_machine = state_machine or DeliveryStateMachine(store)
        self.scheduler = scheduler or AsyncioScheduler()
        self.event_bus = event_bus or tracking_event_bus
        self._sessions: Dict[uuid.UUID, TrackingSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, delivery_id: uuid.UUID) -> Optional[TrackingSession]:
        return self._sessions.get(delivery_id)

    async def open(self, delivery_id: uuid.UUID) -> TrackingSession:
        """Return the delivery's session, creating and loading it on first view."""
        session = self._sessions.get(delivery_id)
        if session is not None:
            await session.refresh()
            return session

        session = TrackingSession(
            delivery_id,
            self.store,
            self.state_machine,
            scheduler=self.scheduler,
            event_bus=self.event_bus,
        )
        try:
            await session.refresh()
        except Exception:
            await session.aclose()
            raise
        self._sessions[delivery_id] = session
        return session

    async def notify_changed(self, delivery_id: uuid.UUID) -> None:
        """Let an open session observe an external change to its delivery."""
        session = self._sessions.get(delivery_id)
        if session is not None:
            await session.refresh()

    async def close(self, delivery_id: uuid.UUID) -> bool:
        session = self._sessions.pop(delivery_id, None)
        if session is None:
            return False
        await session.aclose()
        return True

    async def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.aclose()
        logger.info(f"Closed {len(sessions)} tracking session(s)")
