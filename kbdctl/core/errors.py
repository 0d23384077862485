"""Domain-specific errors for kbdctl."""


class KbdctlError(Exception):
    """Base error for kbdctl."""


class CollaboratorMissingError(KbdctlError):
    """Raised when a required collaborator or firmware capability is absent."""


class ConfigError(KbdctlError):
    """Raised when the configuration file is unreadable or invalid."""


class KeycodeTableError(KbdctlError):
    """Raised when loading keycode table sources fails."""


class KeycodeTableValidationError(KeycodeTableError):
    """Raised when a keycode table does not conform to schema or semantics."""


class DeviceDiscoveryError(KbdctlError):
    """Raised when USB device enumeration fails."""


class DeviceSelectionError(KbdctlError):
    """Raised when discovery cannot resolve a single target keyboard."""


class NoDeviceFoundError(DeviceSelectionError):
    """Raised when no candidate keyboard is available."""


class AmbiguousDeviceError(DeviceSelectionError):
    """Raised when several keyboards match and no chooser was allowed."""


class DeviceOpenError(KbdctlError):
    """Raised when the selected keyboard cannot be opened."""


class SnapshotIncompleteError(KbdctlError):
    """Raised when the loaded snapshot lacks a count or entity array."""


class SlotError(KbdctlError):
    """Base slot addressing error."""


class InvalidSlotIdError(SlotError):
    """Raised for a slot id that is not a non-negative integer."""


class SlotOutOfRangeError(SlotError):
    """Raised for a slot id at or beyond the collection capacity."""


class SlotNotFoundError(SlotError):
    """Raised when a slot in range holds only its empty sentinel."""


class NoSlotsAvailableError(SlotError):
    """Raised when every slot of a collection is in use."""


class SequenceParseError(KbdctlError):
    """Base error for definition strings that cannot be parsed."""


class StructuralParseError(SequenceParseError):
    """Raised when a definition has the wrong shape."""


class KeyParseError(SequenceParseError):
    """Raised when a key name fails keycode translation."""


class ConstraintParseError(SequenceParseError):
    """Raised when individually valid fields conflict with each other."""


class EmptySequenceError(SequenceParseError):
    """Raised when a definition contains no actions at all."""


class CommitError(KbdctlError):
    """Base error for firmware write failures."""


class WriteFailedError(CommitError):
    """Raised when pushing a value to the device fails."""


class PersistFailedError(CommitError):
    """Raised when saving pushed values on the device fails."""


class FileIOError(KbdctlError):
    """Raised when reading or writing a local file fails."""


class UploadValidationError(KbdctlError):
    """Raised when a configuration file fails structural validation."""


class SettingResolutionError(KbdctlError):
    """Raised when a QMK setting name or value cannot be resolved."""
