# Android Emulator Boot Core Modules

from .adb import AdbServer, DeviceRegistry, find_new_device, parse_devices_output
from .adb_models import ADBError, BridgeError, DeviceSnapshot, DeviceState, QueryError
from .config import BootSettings
from .emulator import boot_emulator, build_launch_args
from .faults import FaultScanner
from .models import Booted, BootOutcome, Failed, FailureReason
from .process import EmulatorProcess, ProcessStartError
from .supervisor import BootSupervisor
