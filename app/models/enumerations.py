from enum import Enum
# enums.py


class Role(str, Enum):
    SUPERADMIN = 'superadmin'
    ADMIN = 'admin'
    USER = 'user'


class JobRunStatus(str, Enum):
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


class PhotoCategory(str, Enum):
    WATER_HEATER = 'water-heater'
    DRAIN = 'drain'
    LEAK = 'leak'
    TOILET = 'toilet'
    FAUCET = 'faucet'
    GAS = 'gas'
    BACKFLOW = 'backflow'
    COMMERCIAL = 'commercial'
    GENERAL = 'general-plumbing'
