from .availability import AvailabilityEngine, free_resources
from .config import Settings, load_settings
from .errors import (
	ConcurrentWriteError,
	InvalidRangeError,
	NoAvailabilityError,
	NotFoundError,
	PersistenceError,
	ReservationError,
)
from .models import (
	DEFAULT_DURATION_MINUTES,
	SERVICE_TYPES,
	Reservation,
	ReservationStatus,
	Resource,
	SlotAvailability,
)
from .notifications import NotificationDispatcher, WebhookNotifier, build_crm_payload, build_email_params
from .resolver import ConflictResolver
from .resources import ResourceRegistry
from .service import BookingService, build_service
from .slots import generate_slots
from .store import InMemoryReservationStore, ReservationStore, YamlReservationStore
from .wizard import BookingWizard, WizardError, WizardState

__all__ = [
	"AvailabilityEngine",
	"free_resources",
	"Settings",
	"load_settings",
	"ConcurrentWriteError",
	"InvalidRangeError",
	"NoAvailabilityError",
	"NotFoundError",
	"PersistenceError",
	"ReservationError",
	"DEFAULT_DURATION_MINUTES",
	"SERVICE_TYPES",
	"Reservation",
	"ReservationStatus",
	"Resource",
	"SlotAvailability",
	"NotificationDispatcher",
	"WebhookNotifier",
	"build_crm_payload",
	"build_email_params",
	"ConflictResolver",
	"ResourceRegistry",
	"BookingService",
	"build_service",
	"generate_slots",
	"InMemoryReservationStore",
	"ReservationStore",
	"YamlReservationStore",
	"BookingWizard",
	"WizardError",
	"WizardState",
]
