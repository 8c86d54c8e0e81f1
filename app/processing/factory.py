from app.config.settings import Settings
from app.processing.base import BaseNotifier, BaseStatusSource
from app.processing.simulated import SimulatedNotifier, SimulatedStatusSource


class ProcessingFactory:
    """Creates the configured processing backend adapters."""

    BACKENDS: tuple[str, ...] = ("simulated",)

    @classmethod
    def create_notifier(cls, settings: Settings) -> BaseNotifier:
        cls._check_backend(settings)
        return SimulatedNotifier(delay_seconds=settings.notify_delay_seconds)

    @classmethod
    def create_status_source(cls, settings: Settings) -> BaseStatusSource:
        cls._check_backend(settings)
        return SimulatedStatusSource()

    @classmethod
    def _check_backend(cls, settings: Settings) -> None:
        backend = settings.processing_backend.lower()
        if backend not in cls.BACKENDS:
            raise ValueError(
                f"Unknown processing backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
            )
