from enum import Enum


class Table(str, Enum):
    USERS = "users"
    TIME_ENTRIES = "time_entries"
    JOB_ADDRESSES = "job_addresses"
    CSI_TASKS = "csi_tasks"


class CacheSlot(str, Enum):
    ALL_USERS_DATA = "allUsersData"
    CSI_TASKS = "csiTasks"
    ALL_JOB_ADDRESSES = "allJobAddresses"


# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

# Sentinel id used to express "every row" as a delete filter
NIL_UUID = "00000000-0000-0000-0000-000000000000"
